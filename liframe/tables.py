"""Configuration tables read from spreadsheets: typed rows addressed by column key."""

from __future__ import annotations

import logging
import os
import posixpath
import re
import struct
import threading
import xml.etree.ElementTree as ET
import zipfile
from collections.abc import Iterable, Mapping, Sequence

from .naming import StrTo

_log = logging.getLogger(__name__)

_INT = re.compile(r"[+-]?[0-9]+")
_MAIN = "{http://schemas.openxmlformats.org/spreadsheetml/2006/main}"
_REL = "{http://schemas.openxmlformats.org/officeDocument/2006/relationships}"
_PKG_REL = "{http://schemas.openxmlformats.org/package/2006/relationships}"


class TableError(ValueError):
    """A table cell is missing, out of range or cannot be converted, or a workbook is unreadable."""


def _parse_int(text: str) -> int:
    if not _INT.fullmatch(text):
        raise TableError(f"invalid integer: {text!r}")
    return int(text)


def _parse_float32(text: str) -> float:
    try:
        value = StrTo(text).to_float()
    except ValueError as exc:
        raise TableError(f"invalid float: {text!r}") from exc
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError as exc:
        raise TableError(f"float out of range: {text!r}") from exc


class Table:
    """One sheet: a row of column types, a row of column keys, then data rows."""

    def __init__(
        self,
        types: Sequence[str],
        keys: Mapping[str, int],
        rows: Iterable[Sequence[str]],
    ) -> None:
        self._types = list(types)
        self._index = dict(keys)
        self._rows = [list(row) for row in rows]

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[str]]) -> Table:
        """Build a table from raw sheet rows: types first, keys second, data after."""
        rows = [list(row) for row in rows]
        if len(rows) < 2:
            raise TableError("a table needs a type row and a key row")
        keys = {cell: i for i, cell in enumerate(rows[1])}
        return cls(rows[0], keys, rows[2:])

    def _cell(self, key: str, idx: int, what: str) -> str:
        if not 0 <= idx < len(self._rows) or key not in self._index:
            raise TableError(f"{what} error")
        row = self._rows[idx]
        column = self._index[key]
        if column >= len(row):
            raise TableError("out of range")
        return row[column]

    def get_int(self, key: str, idx: int) -> int:
        return _parse_int(self._cell(key, idx, "GetInt"))

    def get_string(self, key: str, idx: int) -> str:
        return self._cell(key, idx, "GetString")

    def get_float32(self, key: str, idx: int) -> float:
        return _parse_float32(self._cell(key, idx, "GetFloat32"))

    def get_float64(self, key: str, idx: int) -> float:
        """Read a float; the text is parsed at single precision, as the stored data expects."""
        return _parse_float32(self._cell(key, idx, "GetFloat64"))

    def count(self) -> int:
        return len(self._rows)

    def to_json_string(self) -> str:
        """Render the data rows as a JSON-like array of objects, typed by the type row."""
        names = {i: k for k, i in self._index.items()}
        objects = []
        for row in self._rows:
            parts = []
            for j, value in enumerate(row):
                key = names.get(j, "")
                kind = self._types[j].lower() if j < len(self._types) else ""
                if kind == "string":
                    parts.append(f'"{key}":"{value}"')
                elif kind == "int":
                    try:
                        number = _parse_int(value)
                    except TableError:
                        number = 0
                    parts.append(f'"{key}":{number}')
                else:
                    parts.append(f'"{key}":{value}')
            objects.append("{" + ",".join(parts) + "}")
        return "[" + ",".join(objects) + "]"


class XlsxManager:
    """Thread-safe store of tables, keyed by workbook path and sheet name."""

    def __init__(self, root_dir: str = "") -> None:
        self._root_dir = root_dir
        self._tables: dict[str, Table] = {}
        self._lock = threading.RLock()

    @property
    def root_dir(self) -> str:
        return self._root_dir

    def set_root_dir(self, root_dir: str) -> None:
        self._root_dir = root_dir

    def _path(self, xlsx: str) -> str:
        return os.path.normpath(os.path.join(self._root_dir, xlsx))

    def _key(self, xlsx: str, sheet: str) -> str:
        return self._path(xlsx) + "/" + sheet

    def load(self, xlsx: str) -> list[str]:
        """Load every non-empty sheet of a workbook under the root directory; return their names."""
        path = self._path(xlsx)
        try:
            sheets = read_xlsx_rows(path)
        except (OSError, TableError) as exc:
            _log.error("Load xlsx %s error:%s", path, exc)
            raise TableError(f"cannot load {path}: {exc}") from exc

        loaded = []
        with self._lock:
            for name, rows in sheets.items():
                if not rows:
                    continue
                self._tables[path + "/" + name] = Table.from_rows(rows)
                loaded.append(name)
        _log.info("Load xlsx %s finish", path)
        return loaded

    def add_table(self, xlsx: str, sheet: str, table: Table) -> None:
        with self._lock:
            self._tables[self._key(xlsx, sheet)] = table

    def get(self, xlsx: str, sheet: str) -> Table | None:
        with self._lock:
            return self._tables.get(self._key(xlsx, sheet))


def _relationship_targets(archive: zipfile.ZipFile, names: set[str]) -> dict[str, str]:
    rels = "xl/_rels/workbook.xml.rels"
    if rels not in names:
        return {}
    root = ET.fromstring(archive.read(rels))
    targets = {}
    for rel in root.iter(f"{_PKG_REL}Relationship"):
        target = rel.get("Target", "")
        if target.startswith("/"):
            target = target.lstrip("/")
        else:
            target = posixpath.normpath("xl/" + target)
        targets[rel.get("Id", "")] = target
    return targets


def _shared_strings(archive: zipfile.ZipFile, names: set[str]) -> list[str]:
    part = "xl/sharedStrings.xml"
    if part not in names:
        return []
    root = ET.fromstring(archive.read(part))
    strings = []
    for item in root.findall(f"{_MAIN}si"):
        direct = item.find(f"{_MAIN}t")
        if direct is not None:
            strings.append(direct.text or "")
        else:
            strings.append(
                "".join(t.text or "" for run in item.findall(f"{_MAIN}r") for t in run.findall(f"{_MAIN}t"))
            )
    return strings


def _column_index(ref: str) -> int:
    letters = ""
    for ch in ref:
        if not ch.isalpha():
            break
        letters += ch
    if not letters:
        raise TableError(f"invalid cell reference: {ref!r}")
    number = 0
    for ch in letters.upper():
        number = number * 26 + ord(ch) - ord("A") + 1
    return number


def _cell_text(cell: ET.Element, shared: list[str]) -> str:
    kind = cell.get("t", "n")
    if kind == "inlineStr":
        inline = cell.find(f"{_MAIN}is")
        return "" if inline is None else "".join(t.text or "" for t in inline.iter(f"{_MAIN}t"))
    value = cell.find(f"{_MAIN}v")
    text = value.text if value is not None and value.text else ""
    if kind == "s":
        if not text:
            return ""
        try:
            return shared[int(text)]
        except (ValueError, IndexError) as exc:
            raise TableError(f"bad shared string index {text!r}") from exc
    return text


def _sheet_rows(root: ET.Element, shared: list[str]) -> list[list[str]]:
    data = root.find(f"{_MAIN}sheetData")
    if data is None:
        return []
    cells: dict[int, dict[int, str]] = {}
    last_row = 0
    for row in data.findall(f"{_MAIN}row"):
        number = row.get("r")
        row_no = int(number) if number and number.isdigit() else last_row + 1
        last_row = row_no
        values = cells.setdefault(row_no, {})
        last_col = 0
        for cell in row.findall(f"{_MAIN}c"):
            ref = cell.get("r")
            col = _column_index(ref) if ref else last_col + 1
            last_col = col
            values[col] = _cell_text(cell, shared)
    height = max(cells, default=0)
    width = max((col for values in cells.values() for col in values), default=0)
    return [
        [cells.get(r, {}).get(c, "") for c in range(1, width + 1)]
        for r in range(1, height + 1)
    ]


def read_xlsx_rows(path: str | os.PathLike) -> dict[str, list[list[str]]]:
    """Read every sheet of an .xlsx workbook as rows of cell text, padded to the sheet width."""
    try:
        with zipfile.ZipFile(path) as archive:
            names = set(archive.namelist())
            workbook = ET.fromstring(archive.read("xl/workbook.xml"))
            targets = _relationship_targets(archive, names)
            shared = _shared_strings(archive, names)
            result: dict[str, list[list[str]]] = {}
            for sheet in workbook.iter(f"{_MAIN}sheet"):
                name = sheet.get("name", "")
                target = targets.get(sheet.get(f"{_REL}id", ""))
                if target is None or target not in names:
                    raise TableError(f"sheet {name!r} has no data part")
                result[name] = _sheet_rows(ET.fromstring(archive.read(target)), shared)
            return result
    except zipfile.BadZipFile as exc:
        raise TableError(f"not an xlsx workbook: {path}") from exc
    except KeyError as exc:
        raise TableError(f"workbook part missing: {exc}") from exc
    except ET.ParseError as exc:
        raise TableError(f"malformed workbook xml: {exc}") from exc