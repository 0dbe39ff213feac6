"""Server configuration, loading it from JSON, and small file and encoding helpers."""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .naming import camel_string

_log = logging.getLogger(__name__)
_package_log = logging.getLogger("liframe")

DB_MAX_IDLE = 30
DB_MAX_CONN = 30


def _opt(key: str, default: Any, **meta: Any) -> Any:
    return field(default=default, metadata={"key": key, **meta})


@dataclass
class ClientConfig:
    remote_host: str = _opt("RemoteHost", "")
    remote_tcp_port: int = _opt("RemoteTcpPort", 0)
    client_name: str = _opt("ClientName", "")
    client_id: str = _opt("ClientId", "")


@dataclass
class DBConfig:
    user: str = _opt("User", "")
    password: str = field(default_factory=str)
    name: str = _opt("Name", "")
    port: int = _opt("Port", 0)
    ip: str = _opt("IP", "")


@dataclass
class HttpConfig:
    port: int = _opt("Port", 0)
    ip: str = _opt("IP", "")


@dataclass
class Config:
    """Settings for one server process."""

    host: str = _opt("Host", "0.0.0.0")
    tcp_port: int = _opt("TcpPort", 8000)
    server_name: str = _opt("ServerName", "Default Server")
    server_id: str = _opt("ServerId", "Server1")
    log_file: str = _opt("LogFile", "./logout/run.log")

    master: ClientConfig = field(default_factory=ClientConfig, metadata={"key": "Master"})
    database: DBConfig = field(default_factory=DBConfig, metadata={"key": "DataBase"})
    http: HttpConfig = field(default_factory=HttpConfig, metadata={"key": "Http"})

    max_packet_size: int = _opt("MaxPacketSize", 40960, unsigned=True)
    max_conn: int = _opt("MaxConn", 12000)
    server_worker_size: int = _opt("ServerWorkerSize", 2, unsigned=True)
    max_worker_task_len: int = _opt("MaxWorkerTaskLen", 1024, unsigned=True)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Config:
        """Build a config from defaults overlaid with the given JSON-style mapping."""
        config = cls()
        _merge_into(config, data)
        return config


def _merge_into(target: Any, data: Any) -> None:
    if not isinstance(data, Mapping):
        raise ValueError(f"expected an object for {type(target).__name__}")
    lowered = {str(k).lower(): v for k, v in data.items()}
    for f in dataclasses.fields(target):
        key = f.metadata.get("key") or camel_string(f.name)
        if key in data:
            raw = data[key]
        elif key.lower() in lowered:
            raw = lowered[key.lower()]
        else:
            continue
        if raw is None:
            continue
        current = getattr(target, f.name)
        if dataclasses.is_dataclass(current):
            _merge_into(current, raw)
        elif isinstance(current, int):
            if isinstance(raw, bool) or not isinstance(raw, int):
                raise ValueError(f"{key}: expected an integer")
            if f.metadata.get("unsigned") and raw < 0:
                raise ValueError(f"{key}: must not be negative")
            setattr(target, f.name, raw)
        else:
            if not isinstance(raw, str):
                raise ValueError(f"{key}: expected a string")
            setattr(target, f.name, raw)


class GlobalObject:
    """Process-wide settings holder."""

    def __init__(self, app_config: Config | None = None) -> None:
        self.app_config = app_config if app_config is not None else Config()
        self.log_handler: logging.Handler | None = None

    def load(self, config_file: str | os.PathLike) -> None:
        """Overlay the JSON config file onto the current settings and open the log file."""
        if not path_exists(config_file):
            text = f"Config File {config_file} is not exist!!"
            _log.error(text)
            raise FileNotFoundError(text)
        content = Path(config_file).read_text(encoding="utf-8")
        try:
            data = json.loads(content)
            _merge_into(self.app_config, data)
        except ValueError:
            _log.error("load config error")
            raise
        _log.info("Config:%s", self.app_config)
        if self.app_config.log_file:
            self._open_log(Path(self.app_config.log_file))

    def _open_log(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        if self.log_handler is not None:
            _package_log.removeHandler(self.log_handler)
            self.log_handler.close()
        _package_log.addHandler(handler)
        self.log_handler = handler


def get_file_line_count(file_path: str | os.PathLike) -> int:
    """Count the lines of a file; an unreadable file counts as 0."""
    try:
        with open(file_path, "rb") as fh:
            return sum(1 for _ in fh)
    except OSError:
        return 0


def path_exists(path: str | os.PathLike) -> bool:
    """Whether a path exists; errors other than absence are raised."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


def _plain(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"cannot encode {type(obj).__name__}")


def encode_object(data: Any) -> bytes:
    """Serialise plain data (dataclasses become dicts) to bytes."""
    return json.dumps(data, default=_plain, ensure_ascii=False).encode("utf-8")


def decode_object(data: bytes) -> Any:
    """Inverse of encode_object."""
    try:
        return json.loads(bytes(data).decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise ValueError(str(exc)) from exc


def mysql_dsn(db_config: DBConfig) -> str | None:
    """Return the MySQL connection string, or None when the database is not configured."""
    c = db_config
    if not c.name or not c.user or not c.password or not c.ip or c.port == 0:
        _log.info("no database")
        return None
    return f"{c.user}:{c.password}@tcp({c.ip}:{c.port})/{c.name}?charset=utf8"