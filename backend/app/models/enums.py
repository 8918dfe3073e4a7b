from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    """Global role of a board user."""

    USER = "user"
    ADMIN = "admin"


class TaskStatus(str, Enum):
    """Column a task sits in on the board."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
