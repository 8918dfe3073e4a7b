from __future__ import annotations

import json

import pytest

from taskboard.realtime import protocol
from taskboard.realtime.store import UnreadCounts
from taskboard.voice.signaling import SignalType


def _frame(frame_type: str, payload: object) -> str:
    return json.dumps({"type": frame_type, "payload": payload})


def test_decodes_webrtc_signal_and_keeps_opaque_fields() -> None:
    raw = _frame(
        "webrtc:signal",
        {"toUserId": 2, "signal": {"type": "offer", "sdp": "v=0", "extra": {"a": 1}}},
    )

    frame = protocol.decode_frame(raw)

    assert isinstance(frame, protocol.WebRTCSignalFrame)
    assert frame.payload.to_user_id == 2
    assert frame.payload.signal.type is SignalType.OFFER
    assert frame.payload.signal.as_relay() == {"type": "offer", "sdp": "v=0", "extra": {"a": 1}}


def test_decodes_active_room_with_null_peer() -> None:
    frame = protocol.decode_frame(_frame("chat:active-room", {"activeUserId": None}))

    assert isinstance(frame, protocol.ActiveRoomFrame)
    assert frame.payload.active_user_id is None


def test_active_room_requires_explicit_peer_field() -> None:
    assert protocol.decode_frame(_frame("chat:active-room", {})) is None
    assert protocol.decode_frame(json.dumps({"type": "chat:active-room"})) is None


def test_decodes_keepalive_frames() -> None:
    assert isinstance(protocol.decode_frame('{"type": "ping"}'), protocol.PingFrame)
    assert isinstance(protocol.decode_frame('{"type": "pong"}'), protocol.PongFrame)


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "not json",
        "[1, 2, 3]",
        '"just a string"',
        _frame("unknown:event", {}),
        _frame("webrtc:signal", {"signal": {"type": "offer"}}),
        _frame("webrtc:signal", {"toUserId": "abc", "signal": {"type": "offer"}}),
        _frame("webrtc:signal", {"toUserId": 2, "signal": {"type": "renegotiate"}}),
        _frame("webrtc:signal", {"toUserId": 2}),
        _frame("chat:active-room", {"activeUserId": "nobody"}),
        json.dumps({"payload": {}}),
    ],
)
def test_invalid_frames_are_rejected(raw) -> None:
    assert protocol.decode_frame(raw) is None


def test_client_cannot_send_server_only_no_answer_signal() -> None:
    raw = _frame("webrtc:signal", {"toUserId": 2, "signal": {"type": "no-answer"}})
    assert protocol.decode_frame(raw) is None


def test_outbound_event_shapes() -> None:
    counts = UnreadCounts(total=3, by_user={7: 1, 2: 2})

    assert protocol.unread_update(counts) == {
        "type": "unread:update",
        "payload": {"total": 3, "byUser": {"2": 2, "7": 1}},
    }
    assert protocol.message_new(1, 2) == {"type": "message:new", "payload": {"fromUserId": 1, "toUserId": 2}}
    assert protocol.chat_read(4) == {"type": "chat:read", "payload": {"userId": 4}}
    assert protocol.webrtc_signal(1, {"type": "hangup"}) == {
        "type": "webrtc:signal",
        "payload": {"fromUserId": 1, "signal": {"type": "hangup"}},
    }
    assert protocol.task_group_created(9) == {"type": "task-group:created", "payload": {"taskId": 9}}
    assert protocol.task_group_new(9, 1) == {
        "type": "task-group:new",
        "payload": {"taskId": 9, "fromUserId": 1},
    }
    assert protocol.task_group_read(9) == {"type": "task-group:read", "payload": {"taskId": 9}}
