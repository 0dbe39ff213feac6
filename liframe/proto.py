"""Message names, result codes and the JSON messages exchanged between servers."""

import dataclasses
import json
import typing
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, ClassVar, TypeVar

from .naming import camel_string

PROXY_ERROR = "proxyError"
AUTH_ERROR = "authError"
GATE_HANDSHAKE = "handshake"
GATE_LOGIN_SERVER_REQ = "gate.LoginServerReq"
GATE_EXIT_PROXY = "gate.ExitProxy"

SYSTEM_SHUT_DOWN = "System.ShutDown"
SYSTEM_PING = "System.Ping"
SYSTEM_SERVER_INFO_REPORT = "System.ServerInfoReport"
SYSTEM_SERVER_LIST_REQ = "System.ServerListReq"
SYSTEM_CHECK_SESSION_REQ = "System.CheckSessionReq"
SYSTEM_SESSION_UPDATE_REQ = "System.SessionUpdateReq"
SYSTEM_USER_ON_OR_OFF_REQ = "System.UserOnOrOffReq"

ENTER_WORLD_JOIN_WORLD_REQ = "EnterWorld.JoinWorldReq"
ENTER_WORLD_SESSION = "EnterWorld.Session"

ENTER_LOGIN_LOGIN_REQ = "EnterLogin.LoginReq"
ENTER_LOGIN_REGISTER_REQ = "EnterLogin.RegisterReq"

GAME_ENTER_GAME_REQ = "enterGameReq"


class Code(IntEnum):
    """Result codes carried in every acknowledgement."""

    SUCCESS = 0
    ILLEGAL = 1
    REQ_FAIL = 2
    USER_ERROR = 3
    USER_EXIST = 4
    USER_FORBID = 5
    NOT_SERVER = 6
    SESSION_ERROR = 7
    ENTER_GAME_ERROR = 8
    ENTER_SCENE_ERROR = 9
    EXIT_SCENE_ERROR = 10


class ServerType(IntEnum):
    MASTER = 0
    LOGIN = 1
    WORLD = 2
    GATE = 3
    GAME = 4


class ServerState(IntEnum):
    NORMAL = 0
    DEAD = 1


class SessionOp(IntEnum):
    DELETE = 0
    KEEP_LIVE = 1


class UserPresence(IntEnum):
    ONLINE = 0
    OFFLINE = 1


class UserAccountState(IntEnum):
    NORMAL = 0
    FORBID = 1


def _wire(name: str) -> Any:
    return {"wire": name}


@dataclass
class BaseAck:
    code: int = Code.SUCCESS


@dataclass
class LoginReq:
    name: str = ""
    password: str = field(default_factory=str)
    ip: str = ""


@dataclass
class LoginAck(BaseAck):
    id: int = 0
    name: str = ""
    password: str = field(default_factory=str)
    session: str = ""


@dataclass
class RegisterReq:
    name: str = ""
    password: str = field(default_factory=str)
    ip: str = ""


@dataclass
class RegisterAck(BaseAck):
    id: int = 0
    name: str = ""
    password: str = field(default_factory=str)


@dataclass
class DistributeServerReq:
    cur_time: int = 0


@dataclass
class ServerInfo:
    name: str = ""
    id: str = ""
    ip: str = field(default="", metadata=_wire("IP"))
    port: int = 0
    server_type: int = field(default=ServerType.MASTER, metadata=_wire("Type"))
    online_cnt: int = 0
    state: int = ServerState.NORMAL
    last_time: int = 0
    proxy_name: str = ""


@dataclass
class DistributeServerAck(BaseAck):
    server_info: ServerInfo = field(default_factory=ServerInfo)


@dataclass
class JoinWorldReq:
    session: str = ""
    user_id: int = 0


@dataclass
class JoinWorldAck(BaseAck):
    session: str = ""
    user_id: int = 0


@dataclass
class SessionAck(BaseAck):
    session: str = ""
    user_id: int = 0


@dataclass
class PingPong:
    cur_time: int = 0


@dataclass
class ServerListReq:
    cur_time: int = 0


@dataclass
class ServerListAck(BaseAck):
    server_map: dict[str, ServerInfo] = field(default_factory=dict)


@dataclass
class CheckSessionReq:
    user_id: int = 0
    conn_id: int = 0
    session: str = ""


@dataclass
class CheckSessionAck(BaseAck):
    user_id: int = 0
    conn_id: int = 0
    session: str = ""


@dataclass
class SessionUpdateReq:
    user_id: int = 0
    conn_id: int = 0
    session: str = ""
    op_type: int = SessionOp.DELETE


@dataclass
class SessionUpdateAck(BaseAck):
    user_id: int = 0
    conn_id: int = 0
    session: str = ""
    op_type: int = SessionOp.DELETE


@dataclass
class UserOnlineOrOffLineReq:
    kind: int = field(default=UserPresence.ONLINE, metadata=_wire("Type"))
    user_id: int = 0


@dataclass
class UserOnlineOrOffLineAck:
    kind: int = field(default=UserPresence.ONLINE, metadata=_wire("Type"))
    user_id: int = 0


@dataclass
class EnterGameReq:
    user_id: int = 0


@dataclass
class EnterGameAck(BaseAck):
    pass


@dataclass
class User:
    """A user account row."""

    TABLE_NAME: ClassVar[str] = "tb_user"

    id: int = 0
    name: str = ""
    password: str = field(default_factory=str)
    login_times: int = 0
    last_login_ip: str = ""
    last_login_time: int = 0
    logout_time: int = 0
    is_online: bool = False
    state: int = UserAccountState.NORMAL
    gold: int = 0


@dataclass
class UserInfoReq:
    user_id: int = 0


@dataclass
class UserInfoAck(BaseAck):
    user: User = field(default_factory=User)


@dataclass
class UserLogoutReq:
    user_id: int = 0


@dataclass
class UserLogoutAck(BaseAck):
    pass


@dataclass
class GameServersInfo:
    id: str = ""
    name: str = ""
    proxy_name: str = ""


@dataclass
class GameServersReq:
    user_id: int = 0


@dataclass
class GameServersAck(BaseAck):
    servers: dict[str, GameServersInfo] = field(default_factory=dict)


def _wire_name(f: dataclasses.Field) -> str:
    return f.metadata.get("wire") or camel_string(f.name)


def _to_wire(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {_wire_name(f): _to_wire(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(k): _to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_wire(v) for v in value]
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return int(value)
    return value


def encode_message(message: Any) -> bytes:
    """Serialise a message dataclass to JSON bytes, using the wire field names."""
    if not dataclasses.is_dataclass(message) or isinstance(message, type):
        raise TypeError(f"cannot encode {type(message).__name__} as a message")
    return json.dumps(_to_wire(message), ensure_ascii=False, separators=(",", ":")).encode("utf-8")


T = TypeVar("T")


def _convert(hint: Any, raw: Any, key: str) -> Any:
    if isinstance(hint, type) and dataclasses.is_dataclass(hint):
        if not isinstance(raw, dict):
            raise ValueError(f"field {key}: expected an object")
        return _from_wire(hint, raw)
    if typing.get_origin(hint) is dict:
        _, value_hint = typing.get_args(hint)
        if not isinstance(raw, dict):
            raise ValueError(f"field {key}: expected an object")
        return {k: _convert(value_hint, v, key) for k, v in raw.items()}
    if hint is bool:
        if not isinstance(raw, bool):
            raise ValueError(f"field {key}: expected a boolean")
        return raw
    if hint is int:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ValueError(f"field {key}: expected an integer")
        return raw
    if hint is str:
        if not isinstance(raw, str):
            raise ValueError(f"field {key}: expected a string")
        return raw
    return raw


def _from_wire(cls: type[T], obj: dict) -> T:
    lowered = {str(k).lower(): v for k, v in obj.items()}
    values: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        key = _wire_name(f)
        if key in obj:
            raw = obj[key]
        elif key.lower() in lowered:
            raw = lowered[key.lower()]
        else:
            continue
        if raw is None:
            continue
        values[f.name] = _convert(f.type, raw, key)
    return cls(**values)


def decode_message(cls: type[T], data: bytes | str) -> T:
    """Parse JSON into a message dataclass; keys match case-insensitively, unknown keys are ignored."""
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        raise TypeError(f"{cls!r} is not a message class")
    if isinstance(data, (bytes, bytearray)):
        data = bytes(data).decode("utf-8")
    obj = json.loads(data)
    if not isinstance(obj, dict):
        raise ValueError(f"cannot decode {type(obj).__name__} into {cls.__name__}")
    return _from_wire(cls, obj)