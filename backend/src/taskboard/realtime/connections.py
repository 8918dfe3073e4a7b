"""Registry of live websocket connections keyed by user."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Set

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import realtime_connections

logger = logging.getLogger(__name__)

_connection_ids = itertools.count(1)


@dataclass(eq=False)
class ConnectionRecord:
    """One accepted websocket and the presence state it owns.

    ``active_peer_id`` is the conversation this particular tab has open. It
    is the back-reference used to release the active-room refcount when the
    socket goes away, so teardown never has to search other users' state.
    """

    websocket: WebSocket
    user_id: int
    id: int = field(default_factory=lambda: next(_connection_ids))
    active_peer_id: int | None = None
    connected_at: float = field(default_factory=time.monotonic)

    @property
    def is_open(self) -> bool:
        return self.websocket.application_state == WebSocketState.CONNECTED

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"ConnectionRecord(id={self.id}, user_id={self.user_id})"


def encode_event(event: dict[str, Any]) -> str:
    return json.dumps(event, separators=(",", ":"), default=str)


async def safe_send_text(websocket: WebSocket, data: str) -> bool:
    """Send a text frame, returning False instead of raising on a dead socket."""

    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_text(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


class ConnectionRegistry:
    """Track every open connection per user and fan events out to them."""

    def __init__(self) -> None:
        self._connections: Dict[int, Set[ConnectionRecord]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def register(self, user_id: int, connection: ConnectionRecord) -> None:
        async with self._lock:
            self._connections[user_id].add(connection)
        realtime_connections.labels("users").inc()

    async def unregister(self, user_id: int, connection: ConnectionRecord) -> bool:
        async with self._lock:
            bucket = self._connections.get(user_id)
            if not bucket or connection not in bucket:
                return False
            bucket.discard(connection)
            if not bucket:
                self._connections.pop(user_id, None)
        realtime_connections.labels("users").dec()
        return True

    def connections_for(self, user_id: int) -> list[ConnectionRecord]:
        return list(self._connections.get(user_id, ()))

    def is_online(self, user_id: int) -> bool:
        return any(record.is_open for record in self._connections.get(user_id, ()))

    def online_user_ids(self) -> list[int]:
        return sorted(self._connections)

    async def emit(self, user_id: int, event: dict[str, Any]) -> int:
        """Send ``event`` to every open connection of ``user_id``.

        Delivery is best effort: sockets that are closed or fail mid-send are
        skipped. Returns how many connections accepted the frame.
        """

        targets = self.connections_for(user_id)
        if not targets:
            return 0
        data = encode_event(event)
        delivered = 0
        for record in targets:
            if await safe_send_text(record.websocket, data):
                delivered += 1
        return delivered

    async def emit_many(self, user_ids: Iterable[int], event: dict[str, Any]) -> int:
        delivered = 0
        for user_id in sorted(set(user_ids)):
            delivered += await self.emit(user_id, event)
        return delivered

    async def send(self, connection: ConnectionRecord, event: dict[str, Any]) -> bool:
        return await safe_send_text(connection.websocket, encode_event(event))


__all__ = ["ConnectionRecord", "ConnectionRegistry", "encode_event", "safe_send_text"]
