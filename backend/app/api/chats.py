"""Direct chat and task group chat endpoints.

Every write commits first and only then pushes realtime events, so a
failing push never loses a message.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_realtime_hub
from app.database import get_db
from app.models import Task, TaskChatGroup, User
from app.models.base import utcnow
from app.schemas import (
    MessageCreate,
    MessageRead,
    PublicUser,
    TaskChatGroupRead,
    TaskGroupMessageCreate,
    TaskGroupMessageRead,
    TaskGroupUnreadRead,
    UnreadCountsRead,
)
from app.services import chat as chat_service
from taskboard.realtime import protocol
from taskboard.realtime.hub import RealtimeHub

router = APIRouter(prefix="/chats", tags=["chats"])

logger = logging.getLogger(__name__)


async def _push(description: str, *pushes: Awaitable[object]) -> None:
    for push in pushes:
        try:
            await push
        except Exception:
            logger.exception("Failed to push %s", description)


def _serialize_group(group: TaskChatGroup, task: Task) -> TaskChatGroupRead:
    return TaskChatGroupRead(
        id=group.id,
        task_id=group.task_id,
        created_by_id=group.created_by_id,
        created_at=group.created_at,
        task_title=task.title,
        participant_ids=chat_service.participant_ids(task),
    )


def _require_task_group_access(task_id: int, user: User, db: Session) -> Task:
    task = chat_service.get_task(db, task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    if not chat_service.can_access_task_group(user, task):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a task participant")
    return task


async def _ensure_group(task: Task, user: User, db: Session, hub: RealtimeHub) -> TaskChatGroup:
    group, created = chat_service.ensure_task_chat_group(db, task.id, user.id)
    if created:
        await _push(
            "task group creation",
            hub.push_task_group_created(task.id, chat_service.participant_ids(task)),
        )
    return group


# ---------------------------------------------------------------------------
# Direct chat
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[PublicUser])
def list_chat_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[User]:
    """Return every user the current user can chat with."""

    return chat_service.list_chat_users(db, current_user.id)


@router.get("/unread", response_model=UnreadCountsRead)
def read_unread_counts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UnreadCountsRead:
    counts = chat_service.get_unread_counts_for_user(db, current_user.id)
    return UnreadCountsRead.model_validate(counts.to_payload())


@router.get("/messages/{user_id}", response_model=list[MessageRead])
def list_messages(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[MessageRead]:
    messages = chat_service.get_messages_between_users(db, current_user.id, user_id)
    return [MessageRead.model_validate(message) for message in messages]


@router.post("/messages", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_realtime_hub),
) -> MessageRead:
    """Store a direct message and notify both sides.

    The message is stored already read when the recipient has this
    conversation open in at least one tab.
    """

    sender_id = current_user.id
    recipient_id = payload.to_user_id
    if recipient_id == sender_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot message yourself")
    if chat_service.get_user(db, recipient_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipient not found")

    seen = hub.is_viewing(recipient_id, sender_id)
    message = chat_service.create_message(
        db,
        from_user_id=sender_id,
        to_user_id=recipient_id,
        content=payload.content,
        read_at=utcnow() if seen else None,
    )
    result = MessageRead.model_validate(message)

    pushes = [
        hub.push_message_new(sender_id, recipient_id),
        hub.push_unread(recipient_id),
    ]
    if seen:
        pushes.append(hub.emit(sender_id, protocol.chat_read(recipient_id)))
    await _push("direct message events", *pushes)
    return result


@router.post("/read/{user_id}", response_model=UnreadCountsRead)
async def mark_conversation_read(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_realtime_hub),
) -> UnreadCountsRead:
    """Mark every message from ``user_id`` as read and return fresh counts."""

    if user_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot read your own conversation")

    viewer_id = current_user.id
    chat_service.mark_messages_as_read(db, viewer_id, user_id)
    counts = chat_service.get_unread_counts_for_user(db, viewer_id)

    await _push(
        "read receipt",
        hub.push_unread(viewer_id),
        hub.emit(user_id, protocol.chat_read(viewer_id)),
    )
    return UnreadCountsRead.model_validate(counts.to_payload())


# ---------------------------------------------------------------------------
# Task chat groups
# ---------------------------------------------------------------------------


@router.get("/groups", response_model=list[TaskChatGroupRead])
def list_task_groups(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[TaskChatGroupRead]:
    return [
        _serialize_group(group, task)
        for group, task in chat_service.list_visible_task_groups(db, current_user)
    ]


@router.get("/groups/unread", response_model=TaskGroupUnreadRead)
def read_task_group_unread(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TaskGroupUnreadRead:
    counts = chat_service.get_task_group_unread_counts(db, current_user.id)
    return TaskGroupUnreadRead.model_validate(counts.to_payload())


@router.post(
    "/groups/task/{task_id}",
    response_model=TaskChatGroupRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_task_group(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_realtime_hub),
) -> TaskChatGroupRead:
    task = _require_task_group_access(task_id, current_user, db)
    group = await _ensure_group(task, current_user, db, hub)
    return _serialize_group(group, task)


@router.get("/groups/task/{task_id}", response_model=list[TaskGroupMessageRead])
async def list_task_group_messages(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_realtime_hub),
) -> list[TaskGroupMessageRead]:
    task = _require_task_group_access(task_id, current_user, db)
    await _ensure_group(task, current_user, db, hub)
    messages = chat_service.get_task_group_messages(db, task.id)
    return [TaskGroupMessageRead.model_validate(message) for message in messages]


@router.post(
    "/groups/task/{task_id}/messages",
    response_model=TaskGroupMessageRead,
    status_code=status.HTTP_201_CREATED,
)
async def send_task_group_message(
    task_id: int,
    payload: TaskGroupMessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_realtime_hub),
) -> TaskGroupMessageRead:
    task = _require_task_group_access(task_id, current_user, db)
    await _ensure_group(task, current_user, db, hub)
    participants = chat_service.participant_ids(task)

    message = chat_service.create_task_group_message(
        db,
        task_id=task.id,
        from_user_id=current_user.id,
        content=payload.content,
    )
    result = TaskGroupMessageRead.model_validate(message)

    await _push(
        "task group message",
        hub.push_task_group_message(task.id, current_user.id, participants),
    )
    return result


@router.post("/groups/task/{task_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_task_group_read(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_realtime_hub),
) -> Response:
    task = _require_task_group_access(task_id, current_user, db)
    chat_service.upsert_task_group_read_state(db, current_user.id, task.id)
    await _push("task group read", hub.push_task_group_read(task.id, current_user.id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
