"""Persistence collaborator consumed by the realtime layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Protocol


@dataclass(slots=True)
class UnreadCounts:
    """Unread direct messages addressed to one user, grouped by sender."""

    total: int = 0
    by_user: Dict[int, int] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "byUser": {str(user_id): count for user_id, count in sorted(self.by_user.items())},
        }


@dataclass(slots=True)
class TaskGroupUnreadCounts:
    """Unread task group messages for one user, grouped by task."""

    total: int = 0
    by_task: Dict[int, int] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "byTask": {str(task_id): count for task_id, count in sorted(self.by_task.items())},
        }


class ChatStore(Protocol):
    """Narrow view of the data layer the hub needs.

    Implementations are synchronous; the system of record decides unread
    counts, the hub never caches them.
    """

    def get_user(self, user_id: int) -> Any | None:
        ...

    def mark_messages_as_read(self, viewer_id: int, peer_id: int) -> int:
        ...

    def get_unread_counts_for_user(self, user_id: int) -> UnreadCounts:
        ...


__all__ = ["ChatStore", "TaskGroupUnreadCounts", "UnreadCounts"]
