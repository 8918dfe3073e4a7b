"""Schemas for direct chat and task group chat endpoints.

Field names are camelCase on the wire to match the websocket events.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator
from pydantic.alias_generators import to_camel

from app.config import get_settings


class ChatModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class _ContentMixin(ChatModel):
    content: constr(strip_whitespace=True, min_length=1) = Field(..., description="Message text")

    @field_validator("content")
    @classmethod
    def limit_length(cls, value: str) -> str:
        limit = get_settings().chat_message_max_length
        if len(value) > limit:
            raise ValueError(f"Message is too long (max {limit} characters)")
        return value


class MessageCreate(_ContentMixin):
    """Payload for sending a direct message."""

    to_user_id: int = Field(..., description="Recipient user id")


class MessageRead(ChatModel):
    id: int
    from_user_id: int
    to_user_id: int
    content: str
    read_at: datetime | None = None
    created_at: datetime


class TaskGroupMessageCreate(_ContentMixin):
    """Payload for posting into a task chat group."""


class TaskGroupMessageRead(ChatModel):
    id: int
    task_id: int
    from_user_id: int
    content: str
    created_at: datetime


class TaskChatGroupRead(ChatModel):
    id: int
    task_id: int
    created_by_id: int
    created_at: datetime
    task_title: str | None = None
    participant_ids: list[int] = Field(default_factory=list)


class UnreadCountsRead(ChatModel):
    total: int = 0
    by_user: dict[str, int] = Field(default_factory=dict)


class TaskGroupUnreadRead(ChatModel):
    total: int = 0
    by_task: dict[str, int] = Field(default_factory=dict)
