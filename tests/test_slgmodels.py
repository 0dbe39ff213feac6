import json
import random

import pytest

from liframe.proto import BaseAck, decode_message, encode_message
from liframe.slgmodels import (
    BUILDING_TABLES,
    Building,
    BuildingType,
    General,
    Nation,
    Role,
    SlgCode,
    new_default_role,
    new_role_buildings,
    random_npc_general,
    random_npc_scene,
)
from liframe.tables import Table

GENERAL_ROWS = [
    ["int", "string", "int", "int", "int", "int", "int"],
    ["gId", "name", "attack", "defense", "soldier", "attack_rate", "defense_rate"],
    ["101", "alpha", "50", "40", "300", "5", "6"],
    ["102", "beta", "60", "30", "200", "7", "8"],
]


def test_code_enumerations_on_the_wire():
    assert json.loads(encode_message(BaseAck(code=SlgCode.SUCCESS)))["Code"] == 0
    assert json.loads(encode_message(BaseAck(code=SlgCode.DB_ERROR)))["Code"] == 10001
    assert json.loads(encode_message(BaseAck(code=SlgCode.ATTACK_LOCAL_CITY)))["Code"] == 10009
    role = new_default_role()
    role.nation = Nation.WU
    assert json.loads(encode_message(role))["nation"] == 2
    assert BuildingType.BARRACK == 4
    assert len(new_role_buildings(BuildingType.BARRACK, 1)) == 16


def test_default_role_resources():
    role = new_default_role()
    assert (role.gold, role.silver, role.mine, role.wood, role.food) == (100000,) * 5
    assert role.role_id == 0


@pytest.mark.parametrize(
    "kind,label",
    [
        (BuildingType.BARRACK, "兵营"),
        (BuildingType.DWELLING, "民居"),
        (BuildingType.FARMLAND, "农场"),
        (BuildingType.LUMBERYARD, "木材"),
        (BuildingType.MINEFIELD, "矿场"),
    ],
)
def test_new_role_buildings(kind, label):
    buildings = new_role_buildings(kind, 7)
    assert len(buildings) == 16
    assert [b.name for b in buildings] == [f"{label}{i}" for i in range(1, 17)]
    assert all(b.level == 1 and b.output == 1000 and b.role_id == 7 for b in buildings)
    assert len({b.id for b in buildings}) == 16
    assert kind in BUILDING_TABLES


def test_building_wire_names():
    wire = json.loads(encode_message(Building(id=3, name="n", role_id=9, level=2, output=1000)))
    assert wire["yield"] == 1000
    assert wire["roleId"] == 9
    assert wire["Id"] == 3


def test_role_round_trip():
    role = new_default_role()
    role.name = "hero"
    role.nation = Nation.SHU
    assert decode_message(Role, encode_message(role)) == role


def test_random_npc_general_matches_a_row():
    table = Table.from_rows(GENERAL_ROWS)
    general = random_npc_general(table, random.Random(1))
    rows = {row[0]: row for row in GENERAL_ROWS[2:]}
    row = rows[str(general.gid)]
    assert general.name == row[1]
    assert general.attack == int(row[2])
    assert general.soldier_num == general.soldier_max == int(row[4])
    assert general.level == 1 and general.role_id == 0


def test_random_npc_general_needs_rows():
    with pytest.raises(ValueError):
        random_npc_general(Table.from_rows(GENERAL_ROWS[:2]))
    with pytest.raises(ValueError):
        random_npc_general(None)


def test_random_npc_scene():
    scene = random_npc_scene(2, Table.from_rows(GENERAL_ROWS), random.Random(3))
    assert scene.id == 2
    assert scene.name == "npc场景 2"
    assert len(scene.generals) == 3
    assert all(isinstance(g, General) and g.gid in (101, 102) for g in scene.generals)
    wire = json.loads(encode_message(scene))
    assert len(wire["generals"]) == 3