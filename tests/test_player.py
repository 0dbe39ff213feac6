import dataclasses
import random

import pytest

from liframe.buildings import SHEET_BASE, XLSX_BUILDING, XLSX_GENERAL, BuildingSheet
from liframe.player import PlayerData, PlayerManager, can_upgrade
from liframe.slgmodels import (
    DEFAULT_BUILDING_YIELD,
    DEFAULT_RESOURCE,
    Building,
    BuildingType,
    General,
    Role,
    new_default_role,
    new_role_buildings,
)
from liframe.tables import Table, XlsxManager

NOW = 1_000_000


def clock():
    return NOW


class FakeStore:
    def __init__(self):
        self.buildings = {}
        self.generals = {}
        self.roles = {}
        self.updated = []
        self.next_id = 1

    def read_buildings(self, role_id, kind):
        return [dataclasses.replace(b) for b in self.buildings.get((role_id, kind), [])]

    def update_building(self, kind, building):
        self.updated.append((kind, building.id, building.level))

    def read_generals(self, role_id):
        return [dataclasses.replace(g) for g in self.generals.get(role_id, [])]

    def insert_general(self, general):
        general.id = self.next_id
        self.next_id += 1
        self.generals.setdefault(general.role_id, []).append(dataclasses.replace(general))

    def update_general(self, general):
        pass

    def update_role(self, role):
        self.roles[role.role_id] = dataclasses.replace(role)


def building_table():
    rows = [
        ["int"] * 6,
        ["yield", "capacity", "need_silve", "need_food", "need_mine", "need_wood"],
        ["0", "0", "0", "0", "0", "0"],
        ["1000", "5000", "0", "0", "0", "0"],
        ["2000", "8000", "100", "200", "300", "400"],
        ["3000", "12000", "1000000000", "0", "0", "0"],
    ]
    return Table.from_rows(rows)


def general_table():
    rows = [
        ["int", "string", "int", "int", "int", "int", "int"],
        ["gId", "name", "attack", "defense", "soldier", "attack_rate", "defense_rate"],
        ["7", "guard", "50", "40", "300", "5", "6"],
    ]
    return Table.from_rows(rows)


@pytest.fixture
def manager():
    mgr = XlsxManager()
    for sheet in BuildingSheet:
        mgr.add_table(XLSX_BUILDING, sheet.value, building_table())
    mgr.add_table(XLSX_GENERAL, SHEET_BASE, general_table())
    return mgr


def test_can_upgrade_pays_cost(manager):
    role = new_default_role()
    assert can_upgrade(2, BuildingType.BARRACK, role, manager) is True
    assert role.silver == DEFAULT_RESOURCE - 100
    assert role.food == DEFAULT_RESOURCE - 200
    assert role.mine == DEFAULT_RESOURCE - 300
    assert role.wood == DEFAULT_RESOURCE - 400


def test_can_upgrade_refuses_when_poor(manager):
    role = new_default_role()
    assert can_upgrade(3, BuildingType.DWELLING, role, manager) is False
    assert role == new_default_role()


def test_can_upgrade_without_table():
    role = new_default_role()
    assert can_upgrade(2, BuildingType.BARRACK, role, XlsxManager()) is False
    assert role.silver == DEFAULT_RESOURCE


def test_buildings_read_from_store_and_unknown_kind(manager):
    store = FakeStore()
    store.buildings[(5, BuildingType.MINEFIELD)] = [Building(id=1, role_id=5, level=1, output=10)]
    player = PlayerData(Role(role_id=5), manager, store, clock=clock)
    mines = player.buildings(BuildingType.MINEFIELD)
    assert [b.id for b in mines] == [1]
    assert player.buildings(BuildingType.MINEFIELD) is mines
    assert player.buildings(99) is None
    assert player.yield_of(99) == 0


def test_yield_and_capacity_sum_buildings(manager):
    role = new_default_role()
    player = PlayerData(
        role,
        manager,
        FakeStore(),
        buildings={BuildingType.BARRACK: new_role_buildings(BuildingType.BARRACK, 1)},
        clock=clock,
    )
    assert player.yield_of(BuildingType.BARRACK) == 16 * DEFAULT_BUILDING_YIELD
    assert player.capacity(BuildingType.BARRACK) == 16 * 5000


def test_upgrade_building_success(manager):
    store = FakeStore()
    role = new_default_role()
    player = PlayerData(
        role,
        manager,
        store,
        buildings={BuildingType.BARRACK: new_role_buildings(BuildingType.BARRACK, 1)},
        clock=clock,
    )
    building, ok = player.upgrade_building(3, BuildingType.BARRACK)
    assert ok is True
    assert building.id == 3
    assert building.level == 2
    assert building.output == 2000
    assert player.yield_of(BuildingType.BARRACK) == 15 * DEFAULT_BUILDING_YIELD + 2000
    assert role.silver == DEFAULT_RESOURCE - 100
    assert store.updated == [(BuildingType.BARRACK, 3, 2)]


def test_upgrade_building_refused_and_missing(manager):
    role = new_default_role()
    rows = [Building(id=1, level=2, output=2000), Building(id=2, level=4, output=3000)]
    player = PlayerData(role, manager, FakeStore(), buildings={BuildingType.FARMLAND: rows}, clock=clock)
    building, ok = player.upgrade_building(1, BuildingType.FARMLAND)
    assert ok is False and building is rows[0]
    assert rows[0].level == 2
    assert player.upgrade_building(2, BuildingType.FARMLAND) == (None, False)
    assert player.upgrade_building(42, BuildingType.FARMLAND) == (None, False)
    assert player.upgrade_building(1, 99) == (None, False)


def test_step_yield_adds_and_caps(manager):
    role = Role(silver=0, mine=DEFAULT_RESOURCE)
    buildings = {
        BuildingType.DWELLING: [Building(id=1, level=1, output=120)],
        BuildingType.MINEFIELD: [Building(id=1, level=1, output=120)],
    }
    player = PlayerData(role, manager, FakeStore(), buildings=buildings, clock=clock)
    player.step_yield()
    assert role.silver == 120 // 60
    assert role.mine == 5000


def test_offline_time_credits_production(manager):
    role = Role(role_id=3, silver=0, off_line_time=NOW - 600)
    buildings = {BuildingType.DWELLING: [Building(id=1, level=1, output=600)]}
    player = PlayerData(role, manager, FakeStore(), buildings=buildings, clock=clock)
    assert player.role.silver == (600 // 60) * 10


def test_generals_created_when_none(manager):
    store = FakeStore()
    player = PlayerData(Role(role_id=9), manager, store, rng=random.Random(1), clock=clock)
    generals = player.generals()
    assert len(generals) == 3
    assert len({g.id for g in generals}) == 3
    assert all(g.role_id == 9 and g.gid == 7 and g.name == "guard" for g in generals)
    assert [g.id for g in player.generals()] == [g.id for g in generals]
    assert len(store.generals[9]) == 3


def test_generals_loaded_from_store(manager):
    store = FakeStore()
    store.generals[4] = [General(id=11, role_id=4, name="kept")]
    player = PlayerData(Role(role_id=4), manager, store, clock=clock)
    assert [(g.id, g.name) for g in player.generals()] == [(11, "kept")]


def test_generals_without_table_raises():
    player = PlayerData(Role(role_id=2), XlsxManager(), FakeStore(), clock=clock)
    with pytest.raises(ValueError):
        player.generals()


def test_manager_create_and_lookup(manager):
    players = PlayerManager(manager, FakeStore(), rng=random.Random(2), clock=clock)
    role = Role(role_id=8)
    first = players.create_player(role)
    assert players.create_player(Role(role_id=8)) is first
    assert players.role(8) is role
    assert players.role(1) is None
    assert players.yield_of(1, BuildingType.BARRACK) == 0
    assert players.upgrade_building(1, 1, BuildingType.BARRACK) == (None, False)
    assert players.generals(1) is None
    generals = players.generals(8)
    assert players.general(8, generals[0].id) is generals[0]
    assert players.general(8, 12345) is None


def test_manager_add_step_and_release(manager):
    store = FakeStore()
    players = PlayerManager(manager, store, clock=clock)
    role = Role(role_id=6, silver=0)
    players.add_player(role, {BuildingType.DWELLING: [Building(id=1, role_id=6, level=1, output=120)]})
    assert players.buildings(6, BuildingType.DWELLING)[0].output == 120
    players.step()
    assert role.silver == 120 // 60
    assert players.release_player(6) is True
    assert 6 not in players
    assert store.roles[6].off_line_time == NOW
    assert (BuildingType.DWELLING, 1, 1) in store.updated
    assert players.release_player(6) is False