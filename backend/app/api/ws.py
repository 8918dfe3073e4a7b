"""WebSocket endpoint for the shared realtime channel."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Dict, TypeVar

from fastapi import APIRouter, Depends, WebSocket, status
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from app.api.deps import get_realtime_hub
from app.config import get_settings
from taskboard.realtime.connections import encode_event, safe_send_text
from taskboard.realtime.hub import RealtimeHub
from taskboard.realtime.protocol import PING_EVENT

router = APIRouter(tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield messages from *receiver* while sending keepalive pings when idle."""

    ping_text = encode_event(ping_payload or PING_EVENT)
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            should_ping = False
            if interval <= 0:
                should_ping = True
            else:
                if now - last_activity >= interval and (
                    last_ping_sent is None or now - last_ping_sent >= interval
                ):
                    should_ping = True

            if should_ping:
                if not await safe_send_text(websocket, ping_text):
                    break
                last_ping_sent = now
            continue
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            raise
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


def _parse_user_id(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


async def _resolve_user_id(websocket: WebSocket, hub: RealtimeHub) -> int | None:
    user_id = _parse_user_id(websocket.query_params.get("userId"))
    if user_id is None:
        logger.info("Rejecting realtime connection without a valid userId")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Missing userId")
        return None

    if hub.resolve_user(user_id) is None:
        logger.info("Rejecting realtime connection for unknown user %s", user_id)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Unknown user")
        return None
    return user_id


@router.websocket("/ws")
async def websocket_realtime(
    websocket: WebSocket,
    hub: RealtimeHub = Depends(get_realtime_hub),
) -> None:
    """Multiplex chat presence, unread counters and call signalling for one tab."""

    user_id = await _resolve_user_id(websocket, hub)
    if user_id is None:
        return

    await websocket.accept()
    connection = await hub.connect(websocket, user_id)

    try:
        async for message in iter_keepalive_messages(
            websocket,
            websocket.receive,
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            if message.get("type") == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            try:
                await hub.handle_frame(connection, raw)
            except Exception:
                logger.exception("Failed to handle realtime frame from user %s", user_id)
    finally:
        await hub.disconnect(connection)
