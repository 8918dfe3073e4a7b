from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient
from starlette.testclient import WebSocketTestSession
from starlette.websockets import WebSocketDisconnect

from app.api import ws as ws_module
from taskboard.voice.calls import CallPhase


@pytest.mark.parametrize("query", ["", "?userId=", "?userId=abc", "?userId=9999"])
def test_connection_without_known_user_is_rejected(client: TestClient, query: str) -> None:
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws{query}") as connection:
            connection.receive_json()

    assert exc.value.code == 1008


def test_connection_receives_unread_counts_first(client: TestClient, make_user) -> None:
    alice_id, alice_headers = make_user("Alice")
    bob_id, _ = make_user("Bob")
    client.post("/api/chats/messages", json={"toUserId": bob_id, "content": "ping"}, headers=alice_headers)

    with client.websocket_connect(f"/ws?userId={bob_id}") as connection:
        assert connection.receive_json() == {
            "type": "unread:update",
            "payload": {"total": 1, "byUser": {str(alice_id): 1}},
        }


def test_malformed_frames_keep_the_connection_open(client: TestClient, make_user) -> None:
    user_id, _ = make_user()

    with client.websocket_connect(f"/ws?userId={user_id}") as connection:
        connection.receive_json()
        connection.send_text("not json")
        connection.send_json({"type": "chat:active-room", "payload": {"activeUserId": "nobody"}})
        connection.send_json({"type": "unknown"})
        connection.send_bytes(b'{"type": "ping"}')

        assert connection.receive_json() == {"type": "pong", "payload": {}}


def test_connection_survives_keepalive_timeout(client: TestClient, make_user) -> None:
    """Server side keepalive pings keep an idle socket open."""

    user_id, _ = make_user("Idle")

    settings = ws_module.settings
    original_timeout = settings.websocket_keepalive_timeout_seconds
    original_interval = settings.websocket_keepalive_ping_interval_seconds

    settings.websocket_keepalive_timeout_seconds = 0.1
    settings.websocket_keepalive_ping_interval_seconds = 0.05

    try:
        with client.websocket_connect(f"/ws?userId={user_id}") as connection:
            _assert_keepalive_sequence(connection)
    finally:
        settings.websocket_keepalive_timeout_seconds = original_timeout
        settings.websocket_keepalive_ping_interval_seconds = original_interval


def _assert_keepalive_sequence(connection: WebSocketTestSession) -> None:
    snapshot = connection.receive_json()
    assert snapshot["type"] == "unread:update"

    time.sleep(0.15)
    ping = connection.receive_json()
    assert ping["type"] == "ping"
    connection.send_json({"type": "pong"})

    time.sleep(0.12)
    ping_again = connection.receive_json()
    assert ping_again["type"] == "ping"
    connection.send_json({"type": "pong"})

    connection.send_json({"type": "ping"})
    pong = connection.receive_json()
    while pong["type"] == "ping":
        pong = connection.receive_json()
    assert pong["type"] == "pong"


def test_call_signalling_over_the_socket(client: TestClient, make_user, realtime_hub) -> None:
    alice_id, _ = make_user("Alice")
    bob_id, _ = make_user("Bob")

    with client.websocket_connect(f"/ws?userId={alice_id}") as alice, client.websocket_connect(
        f"/ws?userId={bob_id}"
    ) as bob:
        alice.receive_json()
        bob.receive_json()

        alice.send_json(
            {"type": "webrtc:signal", "payload": {"toUserId": bob_id, "signal": {"type": "offer", "sdp": "v=0"}}}
        )
        assert bob.receive_json() == {
            "type": "webrtc:signal",
            "payload": {"fromUserId": alice_id, "signal": {"type": "offer", "sdp": "v=0"}},
        }

        bob.send_json(
            {"type": "webrtc:signal", "payload": {"toUserId": alice_id, "signal": {"type": "answer", "sdp": "v=1"}}}
        )
        assert alice.receive_json() == {
            "type": "webrtc:signal",
            "payload": {"fromUserId": bob_id, "signal": {"type": "answer", "sdp": "v=1"}},
        }
        assert realtime_hub.calls.phase_of(alice_id) is CallPhase.CONNECTED

    deadline = time.monotonic() + 2
    while realtime_hub.calls.phase_of(bob_id) is not CallPhase.IDLE and time.monotonic() < deadline:
        time.sleep(0.01)
    assert realtime_hub.calls.phase_of(bob_id) is CallPhase.IDLE
