"""Pydantic schemas for API payloads."""

from .auth import LoginRequest, Token
from .chat import (
    MessageCreate,
    MessageRead,
    TaskChatGroupRead,
    TaskGroupMessageCreate,
    TaskGroupMessageRead,
    TaskGroupUnreadRead,
    UnreadCountsRead,
)
from .users import PublicUser, UserRead

__all__ = [
    "LoginRequest",
    "Token",
    "PublicUser",
    "UserRead",
    "MessageCreate",
    "MessageRead",
    "TaskChatGroupRead",
    "TaskGroupMessageCreate",
    "TaskGroupMessageRead",
    "TaskGroupUnreadRead",
    "UnreadCountsRead",
]
