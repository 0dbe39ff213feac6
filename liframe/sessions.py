"""Encrypted login sessions and the tracking of which connection holds each session."""

from __future__ import annotations

import base64
import binascii
import logging
import threading
import time
from typing import Any, Callable, Protocol

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .registry import ServerRegistry

_log = logging.getLogger(__name__)

DEFAULT_SESSION_KEY = "sessionKey123456"
SESSION_LIFETIME = 5 * 60


class SessionError(Exception):
    """A session string cannot be decoded into its origin."""


class _Connection(Protocol):
    def set_property(self, key: str, value: Any) -> None: ...

    def get_property(self, key: str) -> Any:
        """Return the property; raise KeyError when it is not set."""
        ...

    def is_closed(self) -> bool: ...

    def stop(self) -> None: ...


class SessionManager:
    """Creates AES-encrypted session strings and maps each session to its connection."""

    def __init__(self, session_key: str = DEFAULT_SESSION_KEY) -> None:
        key = session_key.encode("utf-8")
        if len(key) not in (16, 24, 32):
            raise ValueError("session key must be 16, 24 or 32 bytes")
        self._key = key
        self._conns: dict[str, _Connection] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._conns)

    def __contains__(self, session: object) -> bool:
        with self._lock:
            return session in self._conns

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.ECB())

    def _encrypt(self, plain: bytes) -> bytes:
        padder = padding.PKCS7(128).padder()
        data = padder.update(plain) + padder.finalize()
        encryptor = self._cipher().encryptor()
        return encryptor.update(data) + encryptor.finalize()

    def _decrypt(self, data: bytes) -> bytes:
        try:
            decryptor = self._cipher().decryptor()
            raw = decryptor.update(data) + decryptor.finalize()
            unpadder = padding.PKCS7(128).unpadder()
            return unpadder.update(raw) + unpadder.finalize()
        except ValueError:
            return b""

    def _fields(self, session: str) -> list[str]:
        try:
            data = base64.b64decode(session, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SessionError("session not found from server") from exc
        parts = self._decrypt(data).decode("utf-8", errors="replace").split("_")
        if len(parts) != 3:
            raise SessionError("session not found from server")
        return parts

    def create_session(self, app_id: str, user_id: int) -> str:
        """Build a session naming the issuing server and the user."""
        src = f"{app_id}_{time.time_ns()}_{user_id}"
        session = base64.b64encode(self._encrypt(src.encode("utf-8"))).decode("ascii")
        _log.info("CreateSession src: %s", src)
        _log.info("CreateSession session: %s", session)
        return session

    def session_origin(self, session: str) -> str:
        """The id of the server that issued the session."""
        return self._fields(session)[0]

    def is_session_valid(self, session: str, user_id: int, registry: ServerRegistry) -> bool:
        """Whether the session belongs to the user and was issued by a known server."""
        try:
            parts = self._fields(session)
        except SessionError:
            return False
        return registry.has_server(parts[0]) and parts[2] == str(user_id)

    def enter(self, session: str, conn: _Connection) -> None:
        """Bind a session to a connection, stopping any other live connection holding it."""
        conn.set_property("session", session)
        with self._lock:
            old = self._conns.get(session)
        if old is not None and old is not conn and not old.is_closed():
            _log.info("session:%s replaced by a new connection", session)
            old.stop()
        with self._lock:
            self._conns[session] = conn

    def exit_by_conn(self, conn: _Connection) -> None:
        """Forget the session held by a connection that went away."""
        try:
            session = conn.get_property("session")
        except KeyError:
            return
        _log.info("session:%s connection closed", session)
        with self._lock:
            self._conns.pop(session, None)

    def exit(self, session: str) -> None:
        """End a session, stopping its connection if still open."""
        with self._lock:
            conn = self._conns.get(session)
        if conn is not None and not conn.is_closed():
            conn.stop()
            _log.info("session:%s connection closed", session)
        with self._lock:
            self._conns.pop(session, None)


class LoginSessionManager:
    """The login server's sessions per user, each alive for five minutes unless kept alive."""

    def __init__(
        self,
        sessions: SessionManager | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.sessions = sessions if sessions is not None else SessionManager()
        self._clock = clock
        self._session_of: dict[int, str] = {}
        self._live_until: dict[int, int] = {}
        self._lock = threading.RLock()

    def _now(self) -> int:
        return int(self._clock())

    def new_session(self, server_id: str, user_id: int, conn: _Connection) -> str:
        session = self.sessions.create_session(server_id, user_id)
        self.sessions.enter(session, conn)
        with self._lock:
            self._session_of[user_id] = session
            self._live_until[user_id] = self._now() + SESSION_LIFETIME
        return session

    def remove_session_force(self, user_id: int) -> None:
        with self._lock:
            session = self._session_of.pop(user_id, None)
            self._live_until.pop(user_id, None)
            if session is not None:
                self.sessions.exit(session)

    def remove_session(self, user_id: int, session: str) -> None:
        with self._lock:
            if self._session_of.get(user_id) != session:
                return
            del self._session_of[user_id]
            self._live_until.pop(user_id, None)
            self.sessions.exit(session)

    def is_live(self, user_id: int, session: str) -> bool:
        with self._lock:
            if self._session_of.get(user_id) != session:
                return False
            return self._live_until.get(user_id, 0) > self._now()

    def keep_alive(self, user_id: int, session: str) -> None:
        with self._lock:
            if self._session_of.get(user_id) == session:
                self._live_until[user_id] = self._now() + SESSION_LIFETIME

    def exit_by_conn(self, conn: _Connection) -> None:
        self.sessions.exit_by_conn(conn)

    def online_count(self) -> int:
        with self._lock:
            return len(self._session_of)

    def expire(self, now: int | None = None) -> list[int]:
        """Drop every session past its lifetime; return the affected user ids."""
        stamp = self._now() if now is None else now
        with self._lock:
            expired = [user for user, until in self._live_until.items() if stamp > until]
        for user in expired:
            self.remove_session_force(user)
        return expired