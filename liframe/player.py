"""Per-player strategy-game state: buildings, production, storage and generals."""

from __future__ import annotations

import dataclasses
import logging
import math
import random
import threading
import time
from collections.abc import Iterable, Mapping
from typing import Callable, Protocol

from .buildings import (
    SHEET_BASE,
    XLSX_BUILDING,
    XLSX_GENERAL,
    BuildingSheet,
    building_capacity,
    building_yield,
    max_level,
)
from .slgmodels import Building, BuildingType, General, Role, random_npc_general
from .tables import Table, TableError, XlsxManager

_log = logging.getLogger(__name__)

_UINT32 = 0xFFFFFFFF
STEP_INTERVAL = 60
STARTING_GENERALS = 3

_SHEETS: dict[BuildingType, BuildingSheet] = {
    BuildingType.BARRACK: BuildingSheet.BARRACK,
    BuildingType.DWELLING: BuildingSheet.DWELLING,
    BuildingType.FARMLAND: BuildingSheet.FARMLAND,
    BuildingType.LUMBERYARD: BuildingSheet.LUMBER,
    BuildingType.MINEFIELD: BuildingSheet.MINE,
}

# Resource on the role and the building kind that produces it, in production order.
_PRODUCTION: tuple[tuple[str, BuildingType], ...] = (
    ("mine", BuildingType.MINEFIELD),
    ("food", BuildingType.FARMLAND),
    ("wood", BuildingType.LUMBERYARD),
    ("silver", BuildingType.DWELLING),
)

# Column of the upgrade cost table and the role resource it is paid from.
_COSTS: tuple[tuple[str, str], ...] = (
    ("need_silve", "silver"),
    ("need_food", "food"),
    ("need_mine", "mine"),
    ("need_wood", "wood"),
)


class _Store(Protocol):
    def read_buildings(self, role_id: int, kind: BuildingType) -> list[Building]: ...

    def update_building(self, kind: BuildingType, building: Building) -> None: ...

    def read_generals(self, role_id: int) -> list[General]: ...

    def insert_general(self, general: General) -> None: ...

    def update_general(self, general: General) -> None: ...

    def update_role(self, role: Role) -> None: ...


class _MemoryStore:
    """Keeps saved roles, buildings and generals in memory."""

    def __init__(self) -> None:
        self.roles: dict[int, Role] = {}
        self.buildings: dict[tuple[int, BuildingType], dict[int, Building]] = {}
        self.generals: dict[int, dict[int, General]] = {}
        self._next_general_id = 1

    def read_buildings(self, role_id: int, kind: BuildingType) -> list[Building]:
        rows = self.buildings.get((role_id, BuildingType(kind)), {})
        return [dataclasses.replace(b) for b in rows.values()]

    def update_building(self, kind: BuildingType, building: Building) -> None:
        rows = self.buildings.setdefault((building.role_id, BuildingType(kind)), {})
        rows[building.id] = dataclasses.replace(building)

    def read_generals(self, role_id: int) -> list[General]:
        return [dataclasses.replace(g) for g in self.generals.get(role_id, {}).values()]

    def insert_general(self, general: General) -> None:
        if general.id == 0:
            general.id = self._next_general_id
            self._next_general_id += 1
        self.update_general(general)

    def update_general(self, general: General) -> None:
        self.generals.setdefault(general.role_id, {})[general.id] = dataclasses.replace(general)

    def update_role(self, role: Role) -> None:
        self.roles[role.role_id] = dataclasses.replace(role)


def _kind(kind: BuildingType | int) -> BuildingType | None:
    try:
        return BuildingType(kind)
    except ValueError:
        return None


def _need(table: Table, column: str, level: int) -> int:
    try:
        return table.get_int(column, level) & _UINT32
    except TableError:
        return 0


def can_upgrade(level: int, kind: BuildingType | int, role: Role, manager: XlsxManager) -> bool:
    """Pay the cost of raising a building to `level` from the role's stock, if it can afford it."""
    building_kind = _kind(kind)
    if building_kind is None:
        return False
    table = manager.get(XLSX_BUILDING, _SHEETS[building_kind].value)
    if table is None:
        return False
    costs = [(attr, _need(table, column, level)) for column, attr in _COSTS]
    if any(getattr(role, attr) < cost for attr, cost in costs):
        return False
    for attr, cost in costs:
        setattr(role, attr, (getattr(role, attr) - cost) & _UINT32)
    return True


class PlayerData:
    """One online role with its buildings, cached totals and generals."""

    def __init__(
        self,
        role: Role,
        manager: XlsxManager | None = None,
        store: _Store | None = None,
        *,
        buildings: Mapping[BuildingType | int, Iterable[Building]] | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.role = role
        self.manager = manager if manager is not None else XlsxManager()
        self.store: _Store = store if store is not None else _MemoryStore()
        self._rng = rng if rng is not None else random.Random()
        self._clock = clock
        self._buildings: dict[BuildingType, list[Building]] = {
            BuildingType(k): list(v) for k, v in (buildings or {}).items()
        }
        self._generals: dict[int, General] = {}
        self._yield: dict[BuildingType, int] = dict.fromkeys(BuildingType, 0)
        self._capacity: dict[BuildingType, int] = dict.fromkeys(BuildingType, 0)
        self._catch_up()

    def _catch_up(self) -> None:
        """Credit what was produced while the role was offline."""
        offline = self.role.off_line_time
        if offline == 0:
            return
        minutes = (int(self._clock()) - offline) / 60.0
        for attr, kind in _PRODUCTION:
            gain = math.ceil((self.yield_of(kind) // 60) * minutes)
            setattr(self.role, attr, (getattr(self.role, attr) + gain) & _UINT32)
        self.check_capacity()

    def buildings(self, kind: BuildingType | int) -> list[Building] | None:
        """The role's buildings of a kind, read from the store on first use; None for an unknown kind."""
        building_kind = _kind(kind)
        if building_kind is None:
            return None
        if building_kind not in self._buildings:
            self._buildings[building_kind] = list(
                self.store.read_buildings(self.role.role_id, building_kind)
            )
        return self._buildings[building_kind]

    def upgrade_building(self, build_id: int, kind: BuildingType | int) -> tuple[Building | None, bool]:
        """Raise one building a level; returns the building (if found) and whether it was raised."""
        found = self.buildings(kind)
        if found is None:
            return None, False
        building_kind = BuildingType(kind)
        sheet = _SHEETS[building_kind]
        top = max_level(self.manager, sheet)
        for building in found:
            if building.id != build_id or building.level >= top:
                continue
            if not can_upgrade(building.level + 1, building_kind, self.role, self.manager):
                return building, False
            self.capacity(building_kind)
            building.level += 1
            total = (self.yield_of(building_kind) - building.output) & _UINT32
            building.output = building_yield(self.manager, sheet, building.level)
            self._yield[building_kind] = (total + building.output) & _UINT32
            self._capacity[building_kind] = (
                self._capacity[building_kind] + building_capacity(self.manager, sheet, building.level)
            ) & _UINT32
            self.store.update_building(building_kind, building)
            return building, True
        return None, False

    def capacity(self, kind: BuildingType | int) -> int:
        """Storage limit granted by the buildings of a kind."""
        found = self.buildings(kind)
        if found is None:
            return 0
        building_kind = BuildingType(kind)
        if self._capacity[building_kind] == 0:
            sheet = _SHEETS[building_kind]
            self._capacity[building_kind] = (
                sum(building_capacity(self.manager, sheet, b.level) for b in found) & _UINT32
            )
        if building_kind == BuildingType.LUMBERYARD:
            return self._yield[building_kind]
        return self._capacity[building_kind]

    def yield_of(self, kind: BuildingType | int) -> int:
        """Hourly production of the buildings of a kind."""
        found = self.buildings(kind)
        if found is None:
            return 0
        building_kind = BuildingType(kind)
        if self._yield[building_kind] == 0:
            self._yield[building_kind] = sum(b.output for b in found) & _UINT32
        return self._yield[building_kind]

    def _new_general(self) -> General:
        table = self.manager.get(XLSX_GENERAL, SHEET_BASE)
        general = random_npc_general(table, self._rng)
        general.role_id = self.role.role_id
        self.store.insert_general(general)
        return general

    def generals(self) -> list[General]:
        """The role's generals; a role with none is given three at random."""
        if not self._generals:
            loaded = list(self.store.read_generals(self.role.role_id))
            if not loaded:
                loaded = [self._new_general() for _ in range(STARTING_GENERALS)]
            self._generals.update((g.id, g) for g in loaded)
        return list(self._generals.values())

    def step_yield(self) -> None:
        """Credit one minute of production, then cap every resource at its storage."""
        for attr, kind in _PRODUCTION:
            gain = self.yield_of(kind) // 60
            setattr(self.role, attr, (getattr(self.role, attr) + gain) & _UINT32)
        self.check_capacity()

    def check_capacity(self) -> None:
        max_mine = self.capacity(BuildingType.MINEFIELD)
        max_lumber = self.capacity(BuildingType.LUMBERYARD)
        max_farm = self.capacity(BuildingType.FARMLAND)
        max_dwelling = self.capacity(BuildingType.DWELLING)
        self.role.mine = min(max_mine, self.role.mine)
        self.role.food = min(max_lumber, self.role.food)
        self.role.wood = min(max_farm, self.role.wood)
        self.role.silver = min(max_dwelling, self.role.silver)

    def _save(self) -> None:
        self.role.off_line_time = int(self._clock())
        self.store.update_role(self.role)
        for kind, rows in self._buildings.items():
            for building in rows:
                self.store.update_building(kind, building)
        for general in self._generals.values():
            self.store.update_general(general)


class PlayerManager:
    """Thread-safe set of online players, keyed by role id."""

    def __init__(
        self,
        manager: XlsxManager | None = None,
        store: _Store | None = None,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.manager = manager if manager is not None else XlsxManager()
        self.store: _Store = store if store is not None else _MemoryStore()
        self._rng = rng
        self._clock = clock
        self._players: dict[int, PlayerData] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._players)

    def __contains__(self, role_id: object) -> bool:
        with self._lock:
            return role_id in self._players

    def _new(self, role: Role, buildings=None) -> PlayerData:
        return PlayerData(
            role, self.manager, self.store, buildings=buildings, rng=self._rng, clock=self._clock
        )

    def step(self) -> None:
        """Credit a minute of production to every player."""
        with self._lock:
            for player in self._players.values():
                player.step_yield()

    def create_player(self, role: Role) -> PlayerData:
        """The player for a role, created if not yet online."""
        with self._lock:
            player = self._players.get(role.role_id)
            if player is None:
                player = self._new(role)
                self._players[role.role_id] = player
            return player

    def add_player(
        self, role: Role, buildings: Mapping[BuildingType | int, Iterable[Building]]
    ) -> PlayerData:
        """Register a freshly created role together with its buildings."""
        with self._lock:
            player = self._new(role, buildings)
            self._players[role.role_id] = player
            return player

    def release_player(self, role_id: int) -> bool:
        """Save a player and take them offline; False if they were not online."""
        with self._lock:
            player = self._players.pop(role_id, None)
            if player is None:
                return False
            player._save()
            return True

    def role(self, role_id: int) -> Role | None:
        with self._lock:
            player = self._players.get(role_id)
            return player.role if player is not None else None

    def buildings(self, role_id: int, kind: BuildingType | int) -> list[Building] | None:
        with self._lock:
            player = self._players.get(role_id)
            return player.buildings(kind) if player is not None else None

    def upgrade_building(
        self, role_id: int, build_id: int, kind: BuildingType | int
    ) -> tuple[Building | None, bool]:
        with self._lock:
            player = self._players.get(role_id)
            if player is None:
                return None, False
            return player.upgrade_building(build_id, kind)

    def yield_of(self, role_id: int, kind: BuildingType | int) -> int:
        with self._lock:
            player = self._players.get(role_id)
            return player.yield_of(kind) if player is not None else 0

    def generals(self, role_id: int) -> list[General] | None:
        with self._lock:
            player = self._players.get(role_id)
            return player.generals() if player is not None else None

    def general(self, role_id: int, general_id: int) -> General | None:
        found = self.generals(role_id)
        if found is None:
            return None
        return next((g for g in found if g.id == general_id), None)