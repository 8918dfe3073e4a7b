from __future__ import annotations

from typing import Any

import pytest
from fastapi.websockets import WebSocketState

from app.monitoring.metrics import realtime_connections
from conftest import DummyWebSocket
from taskboard.realtime.connections import ConnectionRecord, ConnectionRegistry


class ExplodingWebSocket(DummyWebSocket):
    async def send_text(self, data: str) -> None:
        raise RuntimeError("socket went away")


def _record(user_id: int, websocket: Any | None = None) -> ConnectionRecord:
    return ConnectionRecord(websocket=websocket or DummyWebSocket(), user_id=user_id)


@pytest.mark.anyio("asyncio")
async def test_emit_reaches_every_tab_of_the_user() -> None:
    registry = ConnectionRegistry()
    first, second, other = _record(1), _record(1), _record(2)
    for record in (first, second, other):
        await registry.register(record.user_id, record)

    delivered = await registry.emit(1, {"type": "chat:read", "payload": {"userId": 2}})

    assert delivered == 2
    assert first.websocket.sent == [{"type": "chat:read", "payload": {"userId": 2}}]
    assert second.websocket.sent == first.websocket.sent
    assert other.websocket.sent == []


@pytest.mark.anyio("asyncio")
async def test_emit_skips_closed_and_failing_sockets() -> None:
    registry = ConnectionRegistry()
    healthy = _record(1)
    closed = _record(1)
    closed.websocket.close()
    failing = _record(1, ExplodingWebSocket())
    for record in (healthy, closed, failing):
        await registry.register(1, record)

    delivered = await registry.emit(1, {"type": "ping", "payload": {}})

    assert delivered == 1
    assert healthy.websocket.sent == [{"type": "ping", "payload": {}}]
    assert closed.websocket.sent == []


@pytest.mark.anyio("asyncio")
async def test_emit_to_unknown_user_is_a_no_op() -> None:
    registry = ConnectionRegistry()
    assert await registry.emit(404, {"type": "ping", "payload": {}}) == 0


@pytest.mark.anyio("asyncio")
async def test_unregister_drops_empty_user_entry() -> None:
    registry = ConnectionRegistry()
    first, second = _record(7), _record(7)
    await registry.register(7, first)
    await registry.register(7, second)

    assert await registry.unregister(7, first) is True
    assert registry.is_online(7)
    assert registry.connections_for(7) == [second]

    assert await registry.unregister(7, second) is True
    assert not registry.is_online(7)
    assert registry.online_user_ids() == []
    assert await registry.unregister(7, second) is False


@pytest.mark.anyio("asyncio")
async def test_is_online_ignores_sockets_that_are_no_longer_connected() -> None:
    registry = ConnectionRegistry()
    record = _record(3)
    await registry.register(3, record)
    record.websocket.application_state = WebSocketState.DISCONNECTED

    assert not registry.is_online(3)


@pytest.mark.anyio("asyncio")
async def test_connection_gauge_tracks_registrations() -> None:
    registry = ConnectionRegistry()
    before = realtime_connections.value("users")
    record = _record(9)

    await registry.register(9, record)
    assert realtime_connections.value("users") == before + 1

    await registry.unregister(9, record)
    assert realtime_connections.value("users") == before
