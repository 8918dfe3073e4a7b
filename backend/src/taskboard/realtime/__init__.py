"""Per-user websocket multiplexing for the shared ``/ws`` channel."""

from .connections import ConnectionRecord, ConnectionRegistry  # noqa: F401
from .presence import ActiveRoomTracker  # noqa: F401
from .store import ChatStore, TaskGroupUnreadCounts, UnreadCounts  # noqa: F401

__all__ = [
    "ActiveRoomTracker",
    "ChatStore",
    "ConnectionRecord",
    "ConnectionRegistry",
    "TaskGroupUnreadCounts",
    "UnreadCounts",
]
