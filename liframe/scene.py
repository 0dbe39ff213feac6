"""A game scene: players walking about and monsters spawning to be fought."""

from __future__ import annotations

import random
import threading
from typing import Any, Callable, Protocol

from .gamestate import (
    ATTACK_PUSH,
    ATTACK_REQ,
    MONSTER_PUSH,
    MOVE_PUSH,
    MOVE_REQ,
    SCENE_REQ,
    USER_PUSH,
    AttackPush,
    AttackReq,
    Monster,
    MonsterPush,
    Move,
    Player,
    SceneData,
    UserManager,
    UserPush,
    UserStatus,
    new_random_monster,
)
from .proto import User, decode_message, encode_message

DEFAULT_MAX_USER = 1000
MAX_MONSTERS = 15
MIN_MONSTER_DISTANCE_SQ = 4900
POSITION_TRIES = 101
ID_WRAP = 1_000_000_000


class _Connection(Protocol):
    def rpc_push(self, msg_name: str, data: bytes) -> None: ...


def _decode(cls: type, data: Any) -> Any:
    try:
        return decode_message(cls, data)
    except (ValueError, TypeError):
        return cls()


class Scene:
    """Holds the users, players and monsters of one scene."""

    def __init__(
        self,
        scene_id: int = 0,
        name: str = "",
        user_manager: UserManager | None = None,
        max_user: int = DEFAULT_MAX_USER,
        rng: random.Random | None = None,
        find_user: Callable[[int], User | None] | None = None,
    ) -> None:
        self.scene_id = scene_id
        self.name = name
        self.user_manager = user_manager if user_manager is not None else UserManager()
        self.max_user = max_user
        self.users: dict[int, User] = {}
        self.players: dict[int, Player] = {}
        self.monsters: dict[int, Monster] = {}
        self.cur_id = 0
        self._rng = rng if rng is not None else random.Random()
        self._find_user = find_user
        self._lock = threading.RLock()

    def enter(self, user_id: int) -> bool:
        """Place the user at a random spot; False when the scene is full."""
        with self._lock:
            if len(self.users) >= self.max_user:
                return False
            user = self._find_user(user_id) if self._find_user is not None else None
            if user is None:
                user = User(id=user_id)
            self.users[user_id] = user
            self.players[user_id] = Player(
                user_id=user_id,
                name=user.name,
                x=self._rng.randrange(1280),
                y=self._rng.randrange(720),
            )
            self.send_to_all(USER_PUSH, UserPush(players=dict(self.players)))
            return True

    def exit(self, user_id: int) -> bool:
        self.user_offline(user_id)
        return True

    def handle_message(self, user_id: int, msg_name: str, data: Any) -> Any:
        """Handle a scene request; returns the reply message or None."""
        with self._lock:
            if msg_name == SCENE_REQ:
                return SceneData(players=dict(self.players), monsters=dict(self.monsters))
            if msg_name == MOVE_REQ:
                move = _decode(Move, data)
                self.send_to_all(MOVE_PUSH, move)
                player = self.players.get(move.user_id)
                if player is not None:
                    player.x = move.tx
                    player.y = move.ty
                return player
            if msg_name == ATTACK_REQ:
                attack = _decode(AttackReq, data)
                monster = self.monsters.get(attack.monster_id)
                if monster is None:
                    return None
                monster.hp = max(monster.hp - attack.hurt, 0)
                push = AttackPush(
                    user_id=attack.user_id,
                    monster_id=attack.monster_id,
                    hurt=attack.hurt,
                    monster_hp=monster.hp,
                )
                self.send_to_all(ATTACK_PUSH, push)
                if monster.hp == 0:
                    del self.monsters[attack.monster_id]
                return push
            return None

    def user_offline(self, user_id: int) -> bool:
        """Remove the user from the scene; always True, meaning the user left."""
        with self._lock:
            self.del_user(user_id)
            self.send_to_all(USER_PUSH, UserPush(players=dict(self.players)))
            return True

    def find_user(self, user_id: int) -> User | None:
        return self.users.get(user_id)

    def del_user(self, user_id: int) -> None:
        self.users.pop(user_id, None)
        self.players.pop(user_id, None)

    def send_to_user(self, user_id: int, msg_name: str, msg: Any) -> None:
        """Push a message to the user if they are online."""
        state = self.user_manager.lookup(user_id)
        if state is None or state.status != UserStatus.ONLINE or state.conn is None:
            return
        try:
            data = encode_message(msg)
        except TypeError:
            return
        state.conn.rpc_push(msg_name, data)

    def send_to_all(self, msg_name: str, msg: Any) -> None:
        for user_id in list(self.users):
            self.send_to_user(user_id, msg_name, msg)

    def monster_position(self) -> tuple[int, int] | None:
        """A spot at least 70 away from every monster, or None if none was found."""
        if not self.monsters:
            return self._rng.randrange(1000) + 100, self._rng.randrange(360) + 200
        for _ in range(POSITION_TRIES):
            x = self._rng.randrange(1160) + 40
            y = self._rng.randrange(400) + 180
            if all(
                (x - m.x) ** 2 + (y - m.y) ** 2 >= MIN_MONSTER_DISTANCE_SQ
                for m in self.monsters.values()
            ):
                return x, y
        return None

    def step(self) -> Monster | None:
        """Spawn one monster while the scene holds few; return it if one was spawned."""
        with self._lock:
            if len(self.monsters) > MAX_MONSTERS:
                return None
            monster = new_random_monster(self._rng)
            position = self.monster_position()
            if position is None:
                return None
            self.cur_id += 1
            monster.x, monster.y = position
            monster.name = f"陪练 {self.cur_id}"
            monster.id = self.cur_id
            self.monsters[self.cur_id] = monster
            self.send_to_all(MONSTER_PUSH, MonsterPush(monsters={self.cur_id: monster}))
            if self.cur_id > ID_WRAP:
                self.cur_id = 0
            return monster