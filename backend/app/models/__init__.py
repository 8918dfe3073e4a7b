"""Database models package."""

from .base import Base
from .chat import (
    Message,
    Task,
    TaskChatGroup,
    TaskGroupMessage,
    TaskGroupReadState,
    User,
    task_assignees,
)
from .enums import TaskPriority, TaskStatus, UserRole

__all__ = [
    "Base",
    "User",
    "Task",
    "task_assignees",
    "Message",
    "TaskChatGroup",
    "TaskGroupMessage",
    "TaskGroupReadState",
    "TaskPriority",
    "TaskStatus",
    "UserRole",
]
