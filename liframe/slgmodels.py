"""Strategy-game records (roles, buildings, generals, cities) and their client messages."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, ClassVar

from .proto import BaseAck
from .tables import Table, TableError

BUILDINGS_PER_KIND = 16
DEFAULT_BUILDING_LEVEL = 1
DEFAULT_BUILDING_YIELD = 1000
DEFAULT_RESOURCE = 100000
NPC_SCENE_GENERALS = 3


def _w(name: str, default: Any = 0) -> Any:
    return field(default=default, metadata={"wire": name})


def _wf(name: str, factory: Any) -> Any:
    return field(default_factory=factory, metadata={"wire": name})


def _signed(value: int, bits: int) -> int:
    value &= (1 << bits) - 1
    return value - (1 << bits) if value >= 1 << (bits - 1) else value


def _unsigned(value: int, bits: int) -> int:
    return value & ((1 << bits) - 1)


class Nation(IntEnum):
    WEI = 0
    SHU = 1
    WU = 2
    OTHER = 3


class SlgCode(IntEnum):
    """Result codes of the strategy game's acknowledgements."""

    SUCCESS = 0
    DB_ERROR = 10001
    NOT_AUTH = 10002
    ROLE_EXIT = 10003
    ROLE_NOT_FOUND = 10004
    BUILDING_UP_ERROR = 10005
    GENERAL_ERROR = 10006
    CITY_ERROR = 10007
    NOT_LOCAL_CITY = 10008
    ATTACK_LOCAL_CITY = 10009


class BuildingType(IntEnum):
    DWELLING = 0
    MINEFIELD = 1
    FARMLAND = 2
    LUMBERYARD = 3
    BARRACK = 4


BUILDING_TABLES: dict[BuildingType, str] = {
    BuildingType.BARRACK: "tb_barrack",
    BuildingType.DWELLING: "tb_dwelling",
    BuildingType.FARMLAND: "tb_farmland",
    BuildingType.LUMBERYARD: "tb_lumber",
    BuildingType.MINEFIELD: "tb_mine",
}

_BUILDING_NAMES: dict[BuildingType, str] = {
    BuildingType.BARRACK: "兵营",
    BuildingType.DWELLING: "民居",
    BuildingType.FARMLAND: "农场",
    BuildingType.LUMBERYARD: "木材",
    BuildingType.MINEFIELD: "矿场",
}


@dataclass
class Building:
    """One building of a role; every kind of building shares this shape."""

    id: int = _w("Id")
    name: str = _w("name", "")
    role_id: int = _w("roleId")
    level: int = _w("level")
    building_type: int = _w("type")
    output: int = _w("yield")


@dataclass
class Role:
    TABLE_NAME: ClassVar[str] = "tb_role"

    role_id: int = _w("roleId")
    name: str = _w("name", "")
    nation: int = _w("nation")
    gold: int = _w("gold")
    silver: int = _w("silver")
    food: int = _w("food")
    mine: int = _w("mine")
    wood: int = _w("wood")
    user_id: int = _w("userId")
    off_line_time: int = _w("offLineTime")


@dataclass
class General:
    TABLE_NAME: ClassVar[str] = "tb_general"

    id: int = _w("Id")
    gid: int = _w("gId")
    name: str = _w("name", "")
    role_id: int = _w("roleId")
    attack: int = _w("attack")
    defense: int = _w("defense")
    attack_rate: int = _w("attack_rate")
    defense_rate: int = _w("defense_rate")
    soldier_num: int = _w("soldierNum")
    soldier_max: int = _w("soldierMax")
    level: int = _w("level")
    exp: int = _w("exp")
    city_id: int = _w("cityId")


@dataclass
class City:
    TABLE_NAME: ClassVar[str] = "tb_city"

    id: int = _w("Id")
    c_id: int = _w("cId")
    name: str = _w("name", "")
    nation: int = _w("nation")
    capital: bool = _w("capital", False)
    adjacent: str = _w("adjacent", "")


@dataclass
class NpcScene:
    id: int = _w("Id")
    name: str = _w("name", "")
    generals: list[General] = _wf("generals", list)


def new_default_role() -> Role:
    """A fresh role with the starting stock of every resource."""
    return Role(
        gold=DEFAULT_RESOURCE,
        silver=DEFAULT_RESOURCE,
        mine=DEFAULT_RESOURCE,
        wood=DEFAULT_RESOURCE,
        food=DEFAULT_RESOURCE,
    )


def new_role_buildings(kind: BuildingType | int, role_id: int) -> list[Building]:
    """The sixteen level-one buildings of a kind that a new role starts with, numbered from 1."""
    label = _BUILDING_NAMES[BuildingType(kind)]
    return [
        Building(
            id=i,
            name=f"{label}{i}",
            role_id=role_id,
            level=DEFAULT_BUILDING_LEVEL,
            building_type=0,
            output=DEFAULT_BUILDING_YIELD,
        )
        for i in range(1, BUILDINGS_PER_KIND + 1)
    ]


def _int(table: Table, key: str, idx: int) -> int:
    try:
        return table.get_int(key, idx)
    except TableError:
        return 0


def _str(table: Table, key: str, idx: int) -> str:
    try:
        return table.get_string(key, idx)
    except TableError:
        return ""


def random_npc_general(table: Table | None, rng: random.Random | None = None) -> General:
    """A level-one general drawn at random from the general base table."""
    if table is None or table.count() == 0:
        raise ValueError("no general table to draw from")
    source = rng if rng is not None else random.Random()
    i = source.randrange(table.count())
    soldier = _signed(_int(table, "soldier", i), 16)
    return General(
        gid=_unsigned(_int(table, "gId", i), 32),
        name=_str(table, "name", i),
        role_id=0,
        attack=_signed(_int(table, "attack", i), 32),
        defense=_signed(_int(table, "defense", i), 32),
        attack_rate=_signed(_int(table, "attack_rate", i), 32),
        defense_rate=_signed(_int(table, "defense_rate", i), 32),
        soldier_num=soldier,
        soldier_max=soldier,
        level=1,
        exp=0,
    )


def random_npc_scene(scene_id: int, table: Table | None, rng: random.Random | None = None) -> NpcScene:
    """An NPC scene holding three random generals."""
    source = rng if rng is not None else random.Random()
    return NpcScene(
        id=scene_id,
        name=f"npc场景 {scene_id}",
        generals=[random_npc_general(table, source) for _ in range(NPC_SCENE_GENERALS)],
    )


@dataclass
class QryBuildingReq:
    build_type: int = _w("type")


@dataclass
class QryBuildingAck(BaseAck):
    build_type: int = _w("type")
    buildings: str = _w("buildings", "")
    output: int = _w("yield")


@dataclass
class UpBuildingReq:
    build_type: int = _w("type")
    build_id: int = _w("Id")


@dataclass
class UpBuildingAck(BaseAck):
    build_type: int = _w("type")
    build: str = _w("build", "")
    output: int = _w("yield")
    role: Role = _wf("role", Role)


@dataclass
class QryGeneralAck(BaseAck):
    generals: list[General] = _wf("generals", list)


@dataclass
class QryNpcSceneAck(BaseAck):
    npc_scenes: list[NpcScene] = _wf("scenes", list)


@dataclass
class QryRoleReq:
    kind: int = _w("type")


@dataclass
class QryRoleAck(BaseAck):
    role: Role = _wf("role", Role)
    kind: int = _w("type")


@dataclass
class NewRoleReq:
    name: str = ""
    nation: int = 0


@dataclass
class NewRoleAck(BaseAck):
    role: Role = _wf("role", Role)


@dataclass
class QryWorldMapAck(BaseAck):
    citys: list[City] = _wf("citys", list)


@dataclass
class GarrisonCityReq:
    general_id: int = _w("generalId")
    city_id: int = _w("cityId")


@dataclass
class GarrisonCityAck(BaseAck):
    general_id: int = _w("generalId")
    city_id: int = _w("cityId")


@dataclass
class AttackCityReq:
    general_id: int = _w("generalId")
    city_id: int = _w("cityId")


@dataclass
class AttackCityAck(BaseAck):
    city_id: int = _w("cityId")
    general: General = _wf("general", General)