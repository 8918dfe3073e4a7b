"""Application service helpers."""

from .chat import SqlChatStore

__all__ = ["SqlChatStore"]
