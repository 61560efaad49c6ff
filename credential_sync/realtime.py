"""Realtime channel gateway — origin-checked WebSocket fan-out.

Connections arrive on the ``/io`` WebSocket route (see api.py). Each one is
checked against an origin allow-list before it is accepted:

  IO_ALLOWED_ORIGINS unset or empty → every origin is accepted
  IO_ALLOWED_ORIGINS="https://a,https://b" → only those origins

A rejected connection is closed before the handshake completes with close
code 4403 and a ``connect_error`` reason, so the client sees an explicit
connect error instead of a silently dropped socket.

Accepted clients receive ``{"type": "connect"}`` and afterwards every success
notification emitted by credential mutations:

    {"type": "notification", "level": "success", "message": "..."}
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)

CONNECT_ERROR_CODE = 4403
CONNECT_ERROR_REASON = "connect_error: origin not allowed"


def _normalize_origin(origin: str) -> str:
    return origin.strip().rstrip("/")


class OriginAllowList:
    """Set of origins allowed to open a realtime connection."""

    def __init__(self, origins: Iterable[str] = ()) -> None:
        self._origins = frozenset(_normalize_origin(o) for o in origins if o.strip())

    @classmethod
    def from_env(cls) -> OriginAllowList:
        return cls(os.environ.get("IO_ALLOWED_ORIGINS", "").split(","))

    @property
    def enabled(self) -> bool:
        """False when no origins are configured (everything is allowed)."""
        return bool(self._origins)

    @property
    def origins(self) -> list[str]:
        return sorted(self._origins)

    def is_allowed(self, origin: str | None) -> bool:
        if not self._origins:
            return True
        if not origin:
            return False
        return _normalize_origin(origin) in self._origins


class ChannelHub:
    """Tracks accepted realtime connections and broadcasts to them.

    Also implements the NotificationSink protocol, so mutation success
    messages reach every connected client.
    """

    def __init__(self, allow_list: OriginAllowList | None = None) -> None:
        self._allow_list = allow_list if allow_list is not None else OriginAllowList()
        self._connections: set[WebSocket] = set()

    @property
    def allow_list(self) -> OriginAllowList:
        return self._allow_list

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> bool:
        """Accept *websocket* if its origin is allowed, else close it with a connect error."""
        origin = websocket.headers.get("origin")
        if not self._allow_list.is_allowed(origin):
            logger.warning("[ChannelHub] Rejected connection from origin %r", origin)
            await websocket.close(code=CONNECT_ERROR_CODE, reason=CONNECT_ERROR_REASON)
            return False

        await websocket.accept()
        self._connections.add(websocket)
        await websocket.send_json({"type": "connect"})
        logger.debug("[ChannelHub] Accepted connection from origin %r", origin)
        return True

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    async def broadcast(self, payload: dict[str, Any]) -> int:
        """Send *payload* to every connection. Returns the number reached."""
        delivered = 0
        for websocket in list(self._connections):
            try:
                await websocket.send_json(payload)
                delivered += 1
            except Exception as e:
                logger.warning("[ChannelHub] Dropping connection after send failure: %s", e)
                self._connections.discard(websocket)
        return delivered

    async def notify_success(self, message: str) -> None:
        logger.info("[Notification] %s", message)
        await self.broadcast({"type": "notification", "level": "success", "message": message})
