"""Building configuration lookups: yield, storage capacity and level cap per building kind."""

from __future__ import annotations

import logging
from enum import Enum

from .tables import TableError, XlsxManager

_log = logging.getLogger(__name__)

XLSX_BUILDING = "building.xlsx"
XLSX_GENERAL = "general.xlsx"
SHEET_BASE = "base"
XLSX_CITY = "city.xlsx"
SHEET_WORLD_CITY = "worldcity"


class BuildingSheet(str, Enum):
    DWELLING = "dwelling"
    BARRACK = "barrack"
    FARMLAND = "farmland"
    LUMBER = "lumber"
    MINE = "mine"


def init_tables(manager: XlsxManager, xlsx_dir: str) -> list[str]:
    """Load the building, general and city workbooks; return the ones that loaded."""
    manager.set_root_dir(xlsx_dir)
    loaded = []
    for name in (XLSX_BUILDING, XLSX_GENERAL, XLSX_CITY):
        try:
            manager.load(name)
        except TableError:
            continue
        loaded.append(name)
    return loaded


def _table(manager: XlsxManager, sheet: BuildingSheet | str):
    return manager.get(XLSX_BUILDING, BuildingSheet(sheet).value)


def _level_value(manager: XlsxManager, sheet: BuildingSheet | str, column: str, level: int) -> int:
    table = _table(manager, sheet)
    if table is None or level >= table.count():
        return 0
    try:
        value = table.get_int(column, level)
    except TableError:
        value = 0
    return value & 0xFFFFFFFF


def building_yield(manager: XlsxManager, sheet: BuildingSheet | str, level: int) -> int:
    """Production per hour of a building at the given level, or 0 if unknown."""
    return _level_value(manager, sheet, "yield", level)


def building_capacity(manager: XlsxManager, sheet: BuildingSheet | str, level: int) -> int:
    """Storage capacity of a building at the given level, or 0 if unknown."""
    return _level_value(manager, sheet, "capacity", level)


def max_level(manager: XlsxManager, sheet: BuildingSheet | str) -> int:
    """The number of configured levels (as a signed byte), or 1 with no table."""
    table = _table(manager, sheet)
    if table is None:
        return 1
    count = table.count() & 0xFF
    return count - 256 if count >= 128 else count