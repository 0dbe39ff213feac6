"""The world map: its cities, and garrisoning or attacking them with a general."""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Iterable

from .slgmodels import (
    AttackCityAck,
    City,
    General,
    GarrisonCityAck,
    QryWorldMapAck,
    Role,
    SlgCode,
)
from .tables import Table, TableError

_log = logging.getLogger(__name__)


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


class CityManager:
    """Thread-safe store of the world's cities, keyed by their configured city id."""

    def __init__(self) -> None:
        self._cities: dict[int, City] = {}
        self._lock = threading.Lock()

    def load_from_table(self, table: Table | None) -> list[City]:
        """Create the cities described by the world-city table, numbered from 1."""
        if table is None:
            raise ValueError("no world city table")
        cities = [
            City(
                id=i + 1,
                c_id=_int(table, "cId", i),
                name=_str(table, "name", i),
                nation=_int(table, "nation", i),
                capital=_int(table, "capital", i) == 1,
                adjacent=_str(table, "adjacent", i),
            )
            for i in range(table.count())
        ]
        self.load_cities(cities)
        return cities

    def load_cities(self, cities: Iterable[City]) -> None:
        with self._lock:
            for city in cities:
                self._cities[city.c_id] = city
            _log.info("cities loaded: %s", self._cities)

    def count(self) -> int:
        with self._lock:
            return len(self._cities)

    def city_map(self) -> dict[int, City]:
        with self._lock:
            return dict(self._cities)


def query_world_map(manager: CityManager) -> QryWorldMapAck:
    """Every city of the map, ordered by city id."""
    cities = manager.city_map()
    return QryWorldMapAck(
        code=SlgCode.SUCCESS,
        citys=[dataclasses.replace(cities[k]) for k in sorted(cities)],
    )


def garrison_city(
    role: Role | None,
    general: General | None,
    cities: dict[int, City],
    city_id: int,
) -> GarrisonCityAck:
    """Station a general in one of the role's own cities; city 0 withdraws the garrison."""
    if role is None:
        raise LookupError("role not found")
    ack = GarrisonCityAck(city_id=city_id, general_id=general.id if general is not None else 0)
    if general is None:
        ack.code = SlgCode.GENERAL_ERROR
    elif city_id == 0:
        general.city_id = city_id
        ack.code = SlgCode.SUCCESS
    else:
        city = cities.get(city_id)
        if city is None:
            ack.code = SlgCode.CITY_ERROR
        elif city.nation == role.nation:
            general.city_id = city_id
            ack.code = SlgCode.SUCCESS
        else:
            ack.code = SlgCode.NOT_LOCAL_CITY
    return ack


def attack_city(
    role: Role | None,
    general: General | None,
    cities: dict[int, City],
    city_id: int,
) -> AttackCityAck:
    """Send a general against a city of another nation."""
    if role is None:
        raise LookupError("role not found")
    ack = AttackCityAck(city_id=city_id)
    if general is None:
        ack.code = SlgCode.GENERAL_ERROR
        return ack
    city = cities.get(city_id)
    if city is None:
        ack.code = SlgCode.CITY_ERROR
    elif city.nation != role.nation:
        general.city_id = city_id
        ack.code = SlgCode.SUCCESS
    else:
        ack.code = SlgCode.ATTACK_LOCAL_CITY
    ack.general = dataclasses.replace(general)
    return ack