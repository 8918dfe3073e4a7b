"""Wire protocol for the shared ``/ws`` channel.

Every frame is a JSON object ``{"type": str, "payload": object}``. Inbound
frames are decoded into a tagged union so each known ``type`` has exactly
one model; anything that does not validate is dropped by the caller.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from taskboard.voice.signaling import SignalType

from .store import UnreadCounts


class EventType(str, Enum):
    """Server-to-client event names the frontend depends on."""

    UNREAD_UPDATE = "unread:update"
    MESSAGE_NEW = "message:new"
    CHAT_READ = "chat:read"
    WEBRTC_SIGNAL = "webrtc:signal"
    TASK_GROUP_CREATED = "task-group:created"
    TASK_GROUP_NEW = "task-group:new"
    TASK_GROUP_READ = "task-group:read"
    PING = "ping"
    PONG = "pong"


# ---------------------------------------------------------------------------
# Inbound frames
# ---------------------------------------------------------------------------


class SignalBody(BaseModel):
    """Opaque negotiation blob; only ``type`` is validated."""

    model_config = ConfigDict(extra="allow")

    type: SignalType

    def as_relay(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"type": self.type.value}
        body.update(self.model_extra or {})
        return body


class WebRTCSignalPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to_user_id: int = Field(alias="toUserId")
    signal: SignalBody


class WebRTCSignalFrame(BaseModel):
    type: Literal["webrtc:signal"]
    payload: WebRTCSignalPayload


class ActiveRoomPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    active_user_id: int | None = Field(alias="activeUserId")


class ActiveRoomFrame(BaseModel):
    type: Literal["chat:active-room"]
    payload: ActiveRoomPayload


class PingFrame(BaseModel):
    type: Literal["ping"]
    payload: Dict[str, Any] | None = None


class PongFrame(BaseModel):
    """Client reply to a server keepalive ping."""

    type: Literal["pong"]
    payload: Dict[str, Any] | None = None


InboundFrame = Annotated[
    Union[WebRTCSignalFrame, ActiveRoomFrame, PingFrame, PongFrame],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[Any] = TypeAdapter(InboundFrame)


def decode_frame(raw: str | bytes | None) -> WebRTCSignalFrame | ActiveRoomFrame | PingFrame | PongFrame | None:
    """Parse a raw text frame; ``None`` means the frame must be ignored."""

    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError:
        return None


# ---------------------------------------------------------------------------
# Outbound events
# ---------------------------------------------------------------------------


def build_event(event_type: EventType, payload: Dict[str, Any] | None = None) -> Dict[str, Any]:
    return {"type": event_type.value, "payload": payload or {}}


def unread_update(counts: UnreadCounts) -> Dict[str, Any]:
    return build_event(EventType.UNREAD_UPDATE, counts.to_payload())


def message_new(from_user_id: int, to_user_id: int) -> Dict[str, Any]:
    return build_event(EventType.MESSAGE_NEW, {"fromUserId": from_user_id, "toUserId": to_user_id})


def chat_read(user_id: int) -> Dict[str, Any]:
    return build_event(EventType.CHAT_READ, {"userId": user_id})


def webrtc_signal(from_user_id: int, signal: Dict[str, Any]) -> Dict[str, Any]:
    return build_event(EventType.WEBRTC_SIGNAL, {"fromUserId": from_user_id, "signal": signal})


def task_group_created(task_id: int) -> Dict[str, Any]:
    return build_event(EventType.TASK_GROUP_CREATED, {"taskId": task_id})


def task_group_new(task_id: int, from_user_id: int) -> Dict[str, Any]:
    return build_event(EventType.TASK_GROUP_NEW, {"taskId": task_id, "fromUserId": from_user_id})


def task_group_read(task_id: int) -> Dict[str, Any]:
    return build_event(EventType.TASK_GROUP_READ, {"taskId": task_id})


PING_EVENT = build_event(EventType.PING)
PONG_EVENT = build_event(EventType.PONG)


__all__ = [
    "ActiveRoomFrame",
    "EventType",
    "PING_EVENT",
    "PONG_EVENT",
    "PingFrame",
    "PongFrame",
    "SignalBody",
    "WebRTCSignalFrame",
    "build_event",
    "chat_read",
    "decode_frame",
    "message_new",
    "task_group_created",
    "task_group_new",
    "task_group_read",
    "unread_update",
    "webrtc_signal",
]
