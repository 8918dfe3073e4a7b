from __future__ import annotations

from conftest import DummyWebSocket
from taskboard.realtime.connections import ConnectionRecord
from taskboard.realtime.presence import ActiveRoomTracker


def _tab(user_id: int) -> ConnectionRecord:
    return ConnectionRecord(websocket=DummyWebSocket(), user_id=user_id)


def test_two_tabs_on_same_room_are_refcounted() -> None:
    tracker = ActiveRoomTracker()
    first, second = _tab(1), _tab(1)

    tracker.declare(first, 2)
    tracker.declare(second, 2)
    assert tracker.refcount(1, 2) == 2

    tracker.release(first)
    assert tracker.is_viewing(1, 2)
    assert tracker.refcount(1, 2) == 1

    tracker.release(second)
    assert not tracker.is_viewing(1, 2)
    assert tracker.snapshot() == {}


def test_redeclaring_moves_the_connection_between_rooms() -> None:
    tracker = ActiveRoomTracker()
    tab = _tab(1)

    tracker.declare(tab, 2)
    tracker.declare(tab, 3)

    assert not tracker.is_viewing(1, 2)
    assert tracker.is_viewing(1, 3)
    assert tab.active_peer_id == 3

    tracker.declare(tab, None)
    assert tab.active_peer_id is None
    assert tracker.snapshot() == {}


def test_declaring_the_same_room_twice_counts_once() -> None:
    tracker = ActiveRoomTracker()
    tab = _tab(1)

    tracker.declare(tab, 2)
    tracker.declare(tab, 2)

    assert tracker.refcount(1, 2) == 1


def test_viewing_yourself_is_ignored() -> None:
    tracker = ActiveRoomTracker()
    tab = _tab(5)
    tracker.declare(tab, 6)

    assert tracker.declare(tab, 5) is False

    assert tracker.refcount(5, 5) == 0
    assert tab.active_peer_id == 6
    assert tracker.is_viewing(5, 6)


def test_viewing_is_directional() -> None:
    tracker = ActiveRoomTracker()
    tracker.declare(_tab(1), 2)

    assert tracker.is_viewing(1, 2)
    assert not tracker.is_viewing(2, 1)
