"""Persistence helpers for direct and task group chat."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.models import (
    Message,
    Task,
    TaskChatGroup,
    TaskGroupMessage,
    TaskGroupReadState,
    User,
    UserRole,
)
from app.models.base import utcnow
from taskboard.realtime.store import TaskGroupUnreadCounts, UnreadCounts

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Users and tasks
# ---------------------------------------------------------------------------


def get_user(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def list_chat_users(db: Session, current_user_id: int) -> list[User]:
    stmt = select(User).where(User.id != current_user_id).order_by(User.name.asc(), User.id.asc())
    return list(db.execute(stmt).scalars().all())


def get_task(db: Session, task_id: int) -> Task | None:
    stmt = select(Task).where(Task.id == task_id).options(selectinload(Task.assignees))
    return db.execute(stmt).scalar_one_or_none()


def participant_ids(task: Task) -> list[int]:
    """Users taking part in a task's group chat: its creator and assignees."""

    ids = {assignee.id for assignee in task.assignees}
    if task.created_by_id is not None:
        ids.add(task.created_by_id)
    return sorted(ids)


def can_access_task_group(user: User, task: Task) -> bool:
    return user.role == UserRole.ADMIN or user.id in participant_ids(task)


# ---------------------------------------------------------------------------
# Direct messages
# ---------------------------------------------------------------------------


def get_messages_between_users(db: Session, user_id: int, other_user_id: int) -> list[Message]:
    stmt = (
        select(Message)
        .where(
            or_(
                (Message.from_user_id == user_id) & (Message.to_user_id == other_user_id),
                (Message.from_user_id == other_user_id) & (Message.to_user_id == user_id),
            )
        )
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return list(db.execute(stmt).scalars().all())


def create_message(
    db: Session,
    *,
    from_user_id: int,
    to_user_id: int,
    content: str,
    read_at: datetime | None = None,
) -> Message:
    message = Message(
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        content=content,
        read_at=read_at,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def mark_messages_as_read(db: Session, viewer_id: int, peer_id: int) -> int:
    """Stamp every unread message ``peer -> viewer``; returns how many changed."""

    stmt = (
        update(Message)
        .where(
            Message.from_user_id == peer_id,
            Message.to_user_id == viewer_id,
            Message.read_at.is_(None),
        )
        .values(read_at=utcnow())
    )
    result = db.execute(stmt)
    db.commit()
    return result.rowcount or 0


def get_unread_counts_for_user(db: Session, user_id: int) -> UnreadCounts:
    stmt = (
        select(Message.from_user_id, func.count(Message.id))
        .where(Message.to_user_id == user_id, Message.read_at.is_(None))
        .group_by(Message.from_user_id)
    )
    by_user = {int(sender_id): int(count) for sender_id, count in db.execute(stmt).all()}
    return UnreadCounts(total=sum(by_user.values()), by_user=by_user)


# ---------------------------------------------------------------------------
# Task chat groups
# ---------------------------------------------------------------------------


def get_task_chat_group(db: Session, task_id: int) -> TaskChatGroup | None:
    stmt = select(TaskChatGroup).where(TaskChatGroup.task_id == task_id)
    return db.execute(stmt).scalar_one_or_none()


def ensure_task_chat_group(db: Session, task_id: int, created_by_id: int) -> tuple[TaskChatGroup, bool]:
    """Return the group of ``task_id``, creating it on first use.

    The second element tells whether this call created the group.
    """

    group = get_task_chat_group(db, task_id)
    if group is not None:
        return group, False

    group = TaskChatGroup(task_id=task_id, created_by_id=created_by_id)
    db.add(group)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = get_task_chat_group(db, task_id)
        if existing is None:
            raise
        logger.debug("Task chat group for task %s was created concurrently", task_id)
        return existing, False
    db.refresh(group)
    return group, True


def list_visible_task_groups(db: Session, user: User) -> list[tuple[TaskChatGroup, Task]]:
    stmt = (
        select(TaskChatGroup, Task)
        .join(Task, Task.id == TaskChatGroup.task_id)
        .options(selectinload(Task.assignees))
        .order_by(TaskChatGroup.created_at.desc(), TaskChatGroup.id.desc())
    )
    rows = db.execute(stmt).all()
    return [(group, task) for group, task in rows if can_access_task_group(user, task)]


def get_task_group_messages(db: Session, task_id: int) -> list[TaskGroupMessage]:
    stmt = (
        select(TaskGroupMessage)
        .where(TaskGroupMessage.task_id == task_id)
        .order_by(TaskGroupMessage.created_at.asc(), TaskGroupMessage.id.asc())
    )
    return list(db.execute(stmt).scalars().all())


def create_task_group_message(db: Session, *, task_id: int, from_user_id: int, content: str) -> TaskGroupMessage:
    message = TaskGroupMessage(task_id=task_id, from_user_id=from_user_id, content=content)
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def get_task_group_read_state(db: Session, user_id: int, task_id: int) -> TaskGroupReadState | None:
    stmt = select(TaskGroupReadState).where(
        TaskGroupReadState.user_id == user_id,
        TaskGroupReadState.task_id == task_id,
    )
    return db.execute(stmt).scalar_one_or_none()


def upsert_task_group_read_state(
    db: Session,
    user_id: int,
    task_id: int,
    last_read_at: datetime | None = None,
) -> TaskGroupReadState:
    timestamp = last_read_at or utcnow()
    state = get_task_group_read_state(db, user_id, task_id)
    if state is None:
        state = TaskGroupReadState(user_id=user_id, task_id=task_id, last_read_at=timestamp)
        db.add(state)
    else:
        state.last_read_at = timestamp
    db.commit()
    db.refresh(state)
    return state


def get_task_group_unread_counts(db: Session, user_id: int) -> TaskGroupUnreadCounts:
    """Count group messages from others newer than the user's last read mark."""

    user = db.get(User, user_id)
    if user is None:
        return TaskGroupUnreadCounts()

    by_task: dict[int, int] = {}
    for group, task in list_visible_task_groups(db, user):
        stmt = select(func.count(TaskGroupMessage.id)).where(
            TaskGroupMessage.task_id == group.task_id,
            TaskGroupMessage.from_user_id != user_id,
        )
        state = get_task_group_read_state(db, user_id, group.task_id)
        if state is not None:
            stmt = stmt.where(TaskGroupMessage.created_at > state.last_read_at)
        count = int(db.execute(stmt).scalar_one())
        if count:
            by_task[task.id] = count
    return TaskGroupUnreadCounts(total=sum(by_task.values()), by_task=by_task)


# ---------------------------------------------------------------------------
# Store consumed by the realtime hub
# ---------------------------------------------------------------------------


class SqlChatStore:
    """:class:`taskboard.realtime.store.ChatStore` backed by SQLAlchemy.

    Each call runs in its own short-lived session so a websocket never
    holds a database connection between frames.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get_user(self, user_id: int) -> User | None:
        with self._session_factory() as db:
            user = get_user(db, user_id)
            if user is not None:
                db.expunge(user)
            return user

    def mark_messages_as_read(self, viewer_id: int, peer_id: int) -> int:
        with self._session_factory() as db:
            return mark_messages_as_read(db, viewer_id, peer_id)

    def get_unread_counts_for_user(self, user_id: int) -> UnreadCounts:
        with self._session_factory() as db:
            return get_unread_counts_for_user(db, user_id)


__all__ = [
    "SqlChatStore",
    "can_access_task_group",
    "create_message",
    "create_task_group_message",
    "ensure_task_chat_group",
    "get_messages_between_users",
    "get_task",
    "get_task_chat_group",
    "get_task_group_messages",
    "get_task_group_read_state",
    "get_task_group_unread_counts",
    "get_unread_counts_for_user",
    "get_user",
    "list_chat_users",
    "list_visible_task_groups",
    "mark_messages_as_read",
    "participant_ids",
    "upsert_task_group_read_state",
]
