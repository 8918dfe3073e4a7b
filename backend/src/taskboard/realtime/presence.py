"""Reference-counted tracking of which conversation each connection has open."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Tuple

from .connections import ConnectionRecord

logger = logging.getLogger(__name__)

RoomKey = Tuple[int, int]


class ActiveRoomTracker:
    """Count, per ``(viewer, peer)`` pair, the connections viewing that chat.

    Several tabs of the same user may hold the same room at once, so the
    relation is a refcount rather than a flag. Each connection remembers its
    own declaration in :attr:`ConnectionRecord.active_peer_id`.
    """

    def __init__(self) -> None:
        self._refcounts: Dict[RoomKey, int] = defaultdict(int)

    def declare(self, connection: ConnectionRecord, peer_id: int | None) -> bool:
        """Move ``connection`` to ``peer_id`` (or to no room).

        Returns ``False`` when the declaration is ignored: viewing your own
        conversation is not a thing in this system.
        """

        viewer_id = connection.user_id
        if peer_id is not None and peer_id == viewer_id:
            logger.debug("Ignoring self active-room declaration for user %s", viewer_id)
            return False

        previous = connection.active_peer_id
        if previous is not None:
            self._decrement((viewer_id, previous))
        connection.active_peer_id = None

        if peer_id is not None:
            self._refcounts[(viewer_id, peer_id)] += 1
            connection.active_peer_id = peer_id
        return True

    def release(self, connection: ConnectionRecord) -> None:
        self.declare(connection, None)

    def is_viewing(self, viewer_id: int, peer_id: int) -> bool:
        return self._refcounts.get((viewer_id, peer_id), 0) > 0

    def refcount(self, viewer_id: int, peer_id: int) -> int:
        return self._refcounts.get((viewer_id, peer_id), 0)

    def snapshot(self) -> dict[RoomKey, int]:
        return dict(self._refcounts)

    def _decrement(self, key: RoomKey) -> None:
        current = self._refcounts.get(key, 0)
        if current <= 1:
            self._refcounts.pop(key, None)
        else:
            self._refcounts[key] = current - 1


__all__ = ["ActiveRoomTracker", "RoomKey"]
