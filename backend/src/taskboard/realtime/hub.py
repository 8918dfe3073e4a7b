"""Single entry point tying connections, presence and calls together."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from fastapi.websockets import WebSocket

from app.monitoring.metrics import realtime_dropped_frames_total, realtime_events_total, reset_call_gauges
from taskboard.voice.calls import DEFAULT_ANSWER_TIMEOUT_SECONDS, CallCoordinator

from . import protocol
from .connections import ConnectionRecord, ConnectionRegistry
from .presence import ActiveRoomTracker
from .store import ChatStore

logger = logging.getLogger(__name__)


class RealtimeHub:
    """Own the in-process routing state of the ``/ws`` channel.

    One hub exists per application. HTTP handlers use it to push chat
    events and to ask whether a recipient is looking at a conversation;
    the websocket endpoint feeds it every inbound frame.
    """

    def __init__(
        self,
        store: ChatStore,
        *,
        call_timeout_seconds: float = DEFAULT_ANSWER_TIMEOUT_SECONDS,
    ) -> None:
        self.store = store
        self.registry = ConnectionRegistry()
        self.presence = ActiveRoomTracker()
        self.calls = CallCoordinator(self.registry, timeout_seconds=call_timeout_seconds)

    async def start(self) -> None:
        reset_call_gauges()
        logger.info("Realtime hub started")

    async def stop(self) -> None:
        await self.calls.shutdown()
        reset_call_gauges()
        logger.info("Realtime hub stopped")

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    def resolve_user(self, user_id: int) -> Any | None:
        return self.store.get_user(user_id)

    async def connect(self, websocket: WebSocket, user_id: int) -> ConnectionRecord:
        """Register an accepted socket and send it the current unread counts."""

        counts = self.store.get_unread_counts_for_user(user_id)
        connection = ConnectionRecord(websocket=websocket, user_id=user_id)
        await self.registry.register(user_id, connection)
        logger.info("User %s connected to realtime channel (connection %s)", user_id, connection.id)
        await self.registry.send(connection, protocol.unread_update(counts))
        return connection

    async def disconnect(self, connection: ConnectionRecord) -> None:
        try:
            self.presence.release(connection)
            await self.calls.disconnect(connection)
        except Exception:
            logger.exception("Failed to end call state for user %s (connection %s)", connection.user_id, connection.id)
        finally:
            await self.registry.unregister(connection.user_id, connection)
        logger.info(
            "User %s disconnected from realtime channel (connection %s)",
            connection.user_id,
            connection.id,
        )

    # ------------------------------------------------------------------
    # Inbound frames
    # ------------------------------------------------------------------
    async def handle_frame(self, connection: ConnectionRecord, raw: str | bytes | None) -> None:
        frame = protocol.decode_frame(raw)
        if frame is None:
            logger.debug("Dropping malformed frame from user %s", connection.user_id)
            realtime_dropped_frames_total.labels("malformed").inc()
            return

        realtime_events_total.labels(frame.type, "inbound", "received").inc()

        if isinstance(frame, protocol.PingFrame):
            await self.registry.send(connection, protocol.PONG_EVENT)
            return

        if isinstance(frame, protocol.PongFrame):
            return

        if isinstance(frame, protocol.ActiveRoomFrame):
            await self.set_active_room(connection, frame.payload.active_user_id)
            return

        payload = frame.payload
        accepted = await self.calls.handle_signal(connection, payload.to_user_id, payload.signal.as_relay())
        if not accepted:
            realtime_dropped_frames_total.labels("invalid_transition").inc()

    async def set_active_room(self, connection: ConnectionRecord, peer_id: int | None) -> None:
        viewer_id = connection.user_id
        if not self.presence.declare(connection, peer_id):
            realtime_dropped_frames_total.labels("self_room").inc()
            return
        if peer_id is None:
            return

        self.store.mark_messages_as_read(viewer_id, peer_id)
        await self.push_unread(viewer_id)
        await self.emit(peer_id, protocol.chat_read(viewer_id))

    # ------------------------------------------------------------------
    # Outbound helpers used by the HTTP layer
    # ------------------------------------------------------------------
    def is_viewing(self, viewer_id: int, peer_id: int) -> bool:
        return self.presence.is_viewing(viewer_id, peer_id)

    def is_online(self, user_id: int) -> bool:
        return self.registry.is_online(user_id)

    async def emit(self, user_id: int, event: dict[str, Any]) -> int:
        delivered = await self.registry.emit(user_id, event)
        realtime_events_total.labels(event["type"], "outbound", "emit").inc()
        return delivered

    async def emit_many(self, user_ids: Iterable[int], event: dict[str, Any]) -> int:
        delivered = await self.registry.emit_many(user_ids, event)
        realtime_events_total.labels(event["type"], "outbound", "broadcast").inc()
        return delivered

    async def push_unread(self, user_id: int) -> int:
        counts = self.store.get_unread_counts_for_user(user_id)
        return await self.emit(user_id, protocol.unread_update(counts))

    async def push_message_new(self, from_user_id: int, to_user_id: int) -> None:
        await self.emit_many((from_user_id, to_user_id), protocol.message_new(from_user_id, to_user_id))

    async def push_task_group_created(self, task_id: int, participant_ids: Iterable[int]) -> None:
        await self.emit_many(participant_ids, protocol.task_group_created(task_id))

    async def push_task_group_message(self, task_id: int, from_user_id: int, participant_ids: Iterable[int]) -> None:
        await self.emit_many(participant_ids, protocol.task_group_new(task_id, from_user_id))

    async def push_task_group_read(self, task_id: int, user_id: int) -> None:
        await self.emit(user_id, protocol.task_group_read(task_id))


__all__ = ["RealtimeHub"]
