"""Game world state: monsters, players, per-user presence and the game's messages."""

from __future__ import annotations

import random
import threading
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from .proto import BaseAck

HEART_BEAT_REQ = "heartBeatReq"
LOGOUT_REQ = "logoutReq"
SCENE_LIST_REQ = "sceneListReq"
ENTER_SCENE_REQ = "enterSceneReq"
EXIT_SCENE_REQ = "exitSceneReq"
SCENE_REQ = "sceneReq"
MOVE_REQ = "moveReq"
MOVE_PUSH = "movePush"
ATTACK_REQ = "attackReq"
ATTACK_PUSH = "attackPush"
MONSTER_PUSH = "monsterPush"
USER_PUSH = "userPush"


def _w(name: str, default: Any = 0) -> Any:
    return field(default=default, metadata={"wire": name})


def _wf(name: str, factory: Any) -> Any:
    return field(default_factory=factory, metadata={"wire": name})


@dataclass
class Monster:
    level: int = _w("level")
    hp: int = _w("hp")
    x: int = _w("x")
    y: int = _w("y")
    name: str = _w("name", "")
    id: int = _w("Id")


@dataclass
class Player:
    user_id: int = _w("userId")
    name: str = _w("name", "")
    x: int = _w("x")
    y: int = _w("y")


def new_random_monster(rng: random.Random | None = None) -> Monster:
    """A monster of random level 1..99 with ten hit points per level."""
    source = rng if rng is not None else random.Random()
    level = source.randrange(99) + 1
    return Monster(level=level, hp=10 * level)


class UserStatus(IntEnum):
    ONLINE = 0
    OFFLINE = 1
    LEAVE = 2


@dataclass
class UserState:
    user_id: int
    status: UserStatus
    scene_id: int
    conn: Any = None


class UserManager:
    """Which scene each user is in and whether they are connected."""

    def __init__(self) -> None:
        self._states: dict[int, UserState] = {}
        self._lock = threading.Lock()

    def change_state(self, user_id: int, status: UserStatus, scene_id: int, conn: Any) -> None:
        """Record a user's state; leaving forgets the user entirely."""
        with self._lock:
            if status != UserStatus.LEAVE:
                self._states[user_id] = UserState(user_id, UserStatus(status), scene_id, conn)
            else:
                self._states.pop(user_id, None)

    def lookup(self, user_id: int) -> UserState | None:
        with self._lock:
            return self._states.get(user_id)


@dataclass
class HeartBeat:
    client_time_stamp: int = _w("clientTimeStamp")
    server_time_stamp: int = _w("serverTimeStamp")


@dataclass
class SceneListAck:
    scene_id: list[int] = _wf("sceneId", list)
    scene_name: list[str] = _wf("sceneName", list)


@dataclass
class EnterSceneReq:
    scene_id: int = _w("sceneId")


@dataclass
class EnterSceneAck(BaseAck):
    scene_id: int = _w("sceneId")
    scene_name: str = _w("sceneName", "")


@dataclass
class ExitSceneReq:
    scene_id: int = _w("sceneId")


@dataclass
class ExitSceneAck(BaseAck):
    scene_id: int = _w("sceneId")


@dataclass
class SceneData:
    players: dict[int, Player] = _wf("players", dict)
    monsters: dict[int, Monster] = _wf("monsters", dict)


@dataclass
class MonsterPush:
    monsters: dict[int, Monster] = _wf("monsters", dict)


@dataclass
class UserPush:
    players: dict[int, Player] = _wf("players", dict)


@dataclass
class Move:
    sx: int = _w("sx")
    sy: int = _w("sy")
    tx: int = _w("tx")
    ty: int = _w("ty")
    user_id: int = _w("userId")


@dataclass
class AttackReq:
    user_id: int = _w("userId")
    monster_id: int = _w("monsterId")
    hurt: int = _w("hurt")


@dataclass
class AttackPush:
    user_id: int = _w("userId")
    monster_id: int = _w("monsterId")
    hurt: int = _w("hurt")
    monster_hp: int = _w("monsterHp")