"""Tracking of the servers in the cluster: the master's registry and each server's view of it."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from collections.abc import Mapping

from .proto import GameServersInfo, ServerInfo, ServerState, ServerType

_log = logging.getLogger(__name__)

_UINT32 = 0xFFFFFFFF
_DISTRIBUTE_LIMIT = 1_000_000_000
_DEAD_AFTER = 60


class ServerRegistry:
    """A server's copy of the cluster list, as last received from the master."""

    def __init__(self) -> None:
        self._servers: dict[str, ServerInfo] = {}
        self._lock = threading.Lock()

    def update(self, server_map: Mapping[str, ServerInfo]) -> None:
        with self._lock:
            self._servers = dict(server_map)

    def server_map(self) -> dict[str, ServerInfo]:
        with self._lock:
            return dict(self._servers)

    def game_servers(self) -> dict[str, GameServersInfo]:
        """Live game servers, keyed as in the server list."""
        with self._lock:
            return {
                key: GameServersInfo(id=info.id, name=info.name, proxy_name=info.proxy_name)
                for key, info in self._servers.items()
                if info.state == ServerState.NORMAL and info.server_type == ServerType.GAME
            }

    def has_server(self, server_id: str) -> bool:
        with self._lock:
            return any(info.id == server_id for info in self._servers.values())

    def distribute(self, server_type: int) -> ServerInfo:
        """The live server of the given type with the fewest users online."""
        with self._lock:
            _log.info("Distribute type: %d, map: %s", server_type, self._servers)
            best: ServerInfo | None = None
            lowest = _DISTRIBUTE_LIMIT
            for info in self._servers.values():
                if (
                    info.server_type == server_type
                    and info.online_cnt < lowest
                    and info.state == ServerState.NORMAL
                ):
                    lowest = info.online_cnt
                    best = info
        if best is None:
            raise LookupError("not found server")
        return best

    def proxy_address(self, proxy_name: str) -> str:
        """The "ip:port" of the server with the given proxy name."""
        with self._lock:
            for info in self._servers.values():
                if info.proxy_name == proxy_name:
                    return f"{info.ip}:{info.port}"
        raise LookupError(f"not found proxy:{proxy_name}")


class OnlineCounter:
    """Thread-safe unsigned 32-bit count of connected clients."""

    def __init__(self, count: int = 0) -> None:
        self._count = count & _UINT32
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def inc(self) -> None:
        with self._lock:
            self._count = (self._count + 1) & _UINT32

    def dec(self) -> None:
        with self._lock:
            self._count = (self._count - 1) & _UINT32

    def set(self, count: int) -> None:
        with self._lock:
            self._count = count & _UINT32


class MasterRegistry:
    """The master's list of reporting servers, each given a proxy name on first report."""

    def __init__(self) -> None:
        self._servers: dict[str, ServerInfo] = {}
        self._next_proxy_id = 0
        self._lock = threading.Lock()

    def report(self, info: ServerInfo, remote_addr: str, now: int | None = None) -> ServerInfo | None:
        """Record a server report from remote_addr ("ip:port"); a malformed address is ignored."""
        parts = remote_addr.split(":")
        if len(parts) != 2:
            return None
        stamp = int(time.time()) if now is None else now
        with self._lock:
            previous = self._servers.get(info.id)
            if previous is not None:
                proxy_name = previous.proxy_name
            else:
                proxy_name = str(self._next_proxy_id)
                self._next_proxy_id += 1
            entry = dataclasses.replace(
                info,
                state=ServerState.NORMAL,
                last_time=stamp,
                ip=parts[0],
                proxy_name=proxy_name,
            )
            self._servers[info.id] = entry
        _log.info("ServerInfoReport %s", entry)
        return entry

    def live_check(self, now: int | None = None) -> None:
        """Mark as dead every server that has not reported for over 60 seconds."""
        stamp = int(time.time()) if now is None else now
        with self._lock:
            for key, info in self._servers.items():
                if stamp - info.last_time > _DEAD_AFTER:
                    self._servers[key] = dataclasses.replace(info, state=ServerState.DEAD)

    def server_map(self) -> dict[str, ServerInfo]:
        with self._lock:
            return dict(self._servers)