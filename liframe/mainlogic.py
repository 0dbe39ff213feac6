"""The game server's logic: scene routing, user presence and the request handler."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Iterable
from typing import Any, Callable, Protocol

from .gamestate import (
    ENTER_SCENE_REQ,
    EXIT_SCENE_REQ,
    HEART_BEAT_REQ,
    LOGOUT_REQ,
    SCENE_LIST_REQ,
    EnterSceneAck,
    EnterSceneReq,
    ExitSceneAck,
    ExitSceneReq,
    HeartBeat,
    SceneListAck,
    UserManager,
    UserStatus,
)
from .proto import (
    AUTH_ERROR,
    GAME_ENTER_GAME_REQ,
    Code,
    EnterGameAck,
    EnterGameReq,
    UserOnlineOrOffLineAck,
    UserOnlineOrOffLineReq,
    UserPresence,
    decode_message,
    encode_message,
)
from .scene import Scene

_log = logging.getLogger(__name__)


def _decode(cls: type, data: Any) -> Any:
    try:
        return decode_message(cls, data)
    except (ValueError, TypeError):
        return cls()


class _Game(Protocol):
    def user_offline(self, user_id: int) -> bool: ...

    def user_online(self, user_id: int) -> None: ...

    def user_logout(self, user_id: int) -> bool: ...

    def shut_down(self) -> None: ...


class GameLogic:
    """Routes users between scenes and forwards scene messages."""

    def __init__(
        self,
        user_manager: UserManager | None = None,
        scenes: Iterable[Scene] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.user_manager = user_manager if user_manager is not None else UserManager()
        if scenes is None:
            scenes = [
                Scene(0, "场景1", self.user_manager, rng=rng),
                Scene(1, "场景2", self.user_manager, rng=rng),
            ]
        self.scenes: dict[int, Scene] = {s.scene_id: s for s in scenes}
        self.admitted: set[int] = set()
        self.stopped = False

    def enter_game(self, req: EnterGameReq) -> bool:
        """Admit the user to the game; every request is accepted."""
        self.admitted.add(req.user_id)
        return True

    def enter_scene(self, user_id: int, scene_id: int, conn: Any) -> tuple[bool, EnterSceneAck]:
        """Move the user into a scene, leaving any other scene first."""
        ack = EnterSceneAck(scene_id=scene_id)
        scene = self.scenes.get(scene_id)
        if scene is None:
            ack.code = Code.ENTER_SCENE_ERROR
            return False, ack
        state = self.user_manager.lookup(user_id)
        if state is not None and state.scene_id != scene_id:
            old = self.scenes.get(state.scene_id)
            if old is not None:
                old.exit(user_id)
        ok = scene.enter(user_id)
        if ok:
            ack.code = Code.SUCCESS
            ack.scene_name = scene.name
            self.user_manager.change_state(user_id, UserStatus.ONLINE, scene_id, conn)
        else:
            ack.code = Code.ENTER_SCENE_ERROR
        return ok, ack

    def exit_scene(self, user_id: int, scene_id: int, conn: Any) -> ExitSceneAck:
        ack = ExitSceneAck(scene_id=scene_id, code=Code.EXIT_SCENE_ERROR)
        scene = self.scenes.get(scene_id)
        if scene is None:
            return ack
        state = self.user_manager.lookup(user_id)
        if state is not None and state.scene_id == scene_id:
            scene.exit(user_id)
            self.user_manager.change_state(user_id, UserStatus.LEAVE, -1, conn)
            ack.code = Code.SUCCESS
        return ack

    def game_message(self, user_id: int, msg_name: str, data: Any, conn: Any) -> Any:
        """Handle a message from an authorised user; returns the reply or None."""
        if msg_name == SCENE_LIST_REQ:
            ordered = sorted(self.scenes.items())
            return SceneListAck(
                scene_id=[s.scene_id for _, s in ordered],
                scene_name=[s.name for _, s in ordered],
            )
        if msg_name == ENTER_SCENE_REQ:
            req = _decode(EnterSceneReq, data)
            return self.enter_scene(user_id, req.scene_id, conn)[1]
        if msg_name == EXIT_SCENE_REQ:
            req = _decode(ExitSceneReq, data)
            return self.exit_scene(user_id, req.scene_id, conn)
        state = self.user_manager.lookup(user_id)
        if state is not None:
            scene = self.scenes.get(state.scene_id)
            if scene is not None:
                return scene.handle_message(user_id, msg_name, data)
        return None

    def user_offline(self, user_id: int) -> bool:
        """True when the user left the game; False when only disconnected and kept in place."""
        left = False
        state = self.user_manager.lookup(user_id)
        if state is not None:
            scene = self.scenes.get(state.scene_id)
            if scene is not None:
                left = scene.user_offline(user_id)
        state = self.user_manager.lookup(user_id)
        if state is not None:
            if left:
                self.user_manager.change_state(user_id, UserStatus.LEAVE, -1, None)
            else:
                self.user_manager.change_state(user_id, UserStatus.OFFLINE, state.scene_id, None)
        return left

    def user_online(self, user_id: int) -> None:
        _log.info("UserOnLine: %d", user_id)

    def user_logout(self, user_id: int) -> bool:
        return self.user_offline(user_id)

    def shut_down(self) -> None:
        """Mark the game as stopped."""
        self.stopped = True
        _log.info("ShutDown")


class GameService:
    """Handles system messages and every client request for a game server."""

    NAMESPACE = "System"

    def __init__(self, game: Any = None, clock: Callable[[], float] = time.time) -> None:
        self.game = game
        self.is_shut_down = False
        self._clock = clock

    def set_game(self, game: _Game) -> None:
        self.game = game

    def shut_down(self) -> None:
        _log.info("ShutDown")
        if self.is_shut_down:
            return
        self.is_shut_down = True
        if self.game is not None:
            self.game.shut_down()

    def user_on_or_off(self, body: Any) -> bytes:
        """Tell the game a user came online or went offline; returns the acknowledgement."""
        req = _decode(UserOnlineOrOffLineReq, body)
        _log.info("UserOnOrOffReq: %s", req)
        data = encode_message(UserOnlineOrOffLineAck(kind=req.kind, user_id=req.user_id))
        if self.game is not None:
            if req.kind == UserPresence.OFFLINE:
                self.game.user_offline(req.user_id)
            else:
                self.game.user_online(req.user_id)
        return data

    def _require_game(self) -> Any:
        if self.game is None:
            raise RuntimeError("no game attached")
        return self.game

    def handle(self, msg_name: str, body: Any, conn: Any) -> bytes | None:
        """Handle a client request; returns the reply body, or None when nothing is sent back."""
        if self.is_shut_down:
            return None
        game = self._require_game()
        if msg_name == GAME_ENTER_GAME_REQ:
            ack = EnterGameAck()
            try:
                req = decode_message(EnterGameReq, body)
            except (ValueError, TypeError) as exc:
                ack.code = Code.ILLEGAL
                _log.info("GameEnterGameReq error:%s", exc)
            else:
                if game.enter_game(req):
                    ack.code = Code.SUCCESS
                    conn.set_property("userId", req.user_id)
                else:
                    ack.code = Code.ENTER_GAME_ERROR
            return encode_message(ack)
        if msg_name == LOGOUT_REQ:
            try:
                user_id = conn.get_property("userId")
            except KeyError:
                pass
            else:
                game.user_logout(user_id)
            conn.remove_property("userId")
            return b""
        if msg_name == HEART_BEAT_REQ:
            beat = _decode(HeartBeat, body)
            beat.server_time_stamp = int(self._clock() * 1000)
            return encode_message(beat)
        try:
            user_id = conn.get_property("userId")
        except KeyError:
            conn.rpc_call(AUTH_ERROR, None)
            return None
        reply = game.game_message(user_id, msg_name, body, conn)
        return b"null" if reply is None else encode_message(reply)