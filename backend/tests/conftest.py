"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketState
from passlib.context import CryptContext
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
for path in (ROOT_DIR, ROOT_DIR / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.core import security  # noqa: E402
from app.core.security import create_access_token, get_password_hash  # noqa: E402
from app.database import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Base, Task, User, UserRole  # noqa: E402
from app.services import SqlChatStore  # noqa: E402
from taskboard.realtime.hub import RealtimeHub  # noqa: E402
from taskboard.realtime.store import UnreadCounts  # noqa: E402

security.pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class DummyWebSocket:
    """Minimal stand-in for a connected Starlette websocket."""

    def __init__(self) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict[str, Any]] = []

    async def send_text(self, data: str) -> None:
        self.sent.append(json.loads(data))

    def close(self) -> None:
        self.application_state = WebSocketState.DISCONNECTED

    def events(self, event_type: str) -> list[dict[str, Any]]:
        return [event for event in self.sent if event["type"] == event_type]


class FakeChatStore:
    """In-memory chat store used by hub and call tests."""

    def __init__(self, user_ids: tuple[int, ...] = (1, 2, 3)) -> None:
        self.user_ids = set(user_ids)
        self.unread: dict[int, dict[int, int]] = {}
        self.read_calls: list[tuple[int, int]] = []

    def add_unread(self, to_user_id: int, from_user_id: int, count: int = 1) -> None:
        bucket = self.unread.setdefault(to_user_id, {})
        bucket[from_user_id] = bucket.get(from_user_id, 0) + count

    def get_user(self, user_id: int) -> Any | None:
        return {"id": user_id} if user_id in self.user_ids else None

    def mark_messages_as_read(self, viewer_id: int, peer_id: int) -> int:
        self.read_calls.append((viewer_id, peer_id))
        return self.unread.get(viewer_id, {}).pop(peer_id, 0)

    def get_unread_counts_for_user(self, user_id: int) -> UnreadCounts:
        by_user = dict(self.unread.get(user_id, {}))
        return UnreadCounts(total=sum(by_user.values()), by_user=by_user)


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine."""

    return sessionmaker(bind=test_engine, future=True)


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def realtime_hub(session_factory) -> RealtimeHub:
    return RealtimeHub(SqlChatStore(session_factory), call_timeout_seconds=30)


@pytest.fixture()
def client(session_factory, realtime_hub) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient with the database and hub wired to the test engine."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.realtime = realtime_hub
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
        app.state.realtime = None


@pytest.fixture()
def make_user(session_factory):
    """Create users directly in the database; returns ``(id, auth headers)``."""

    counter = {"value": 0}

    def factory(name: str | None = None, *, role: UserRole = UserRole.USER) -> tuple[int, dict[str, str]]:
        counter["value"] += 1
        label = name or f"user{counter['value']}"
        with session_factory() as session:
            user = User(
                name=label,
                email=f"{label.lower()}@example.com",
                hashed_password=get_password_hash("password"),
                role=role,
            )
            session.add(user)
            session.commit()
            user_id = user.id
        token = create_access_token({"sub": str(user_id)})
        return user_id, {"Authorization": f"Bearer {token}"}

    return factory


@pytest.fixture()
def make_task(session_factory):
    def factory(title: str, *, created_by_id: int, assignee_ids: tuple[int, ...] = ()) -> int:
        with session_factory() as session:
            task = Task(title=title, created_by_id=created_by_id)
            task.assignees = [session.get(User, user_id) for user_id in assignee_ids]
            session.add(task)
            session.commit()
            return task.id

    return factory
