# tests/conftest.py
from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Iterator, Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from goal_chat.api.v1.dependencies import get_chat_services_dep
from goal_chat.core.security import create_access_token
from goal_chat.core.settings import Settings, settings
from goal_chat.db.session import Base
from goal_chat.main import app as fastapi_app
from goal_chat.models import Message, MessageStatus, MessageType, StoredFile, UserProfile
from goal_chat.services.chat import ChatServices, build_chat_services
from goal_chat.services.presence import InMemoryPresenceRegistry

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class RecordingConnection:
    """Connection double that keeps every pushed frame."""

    def __init__(self) -> None:
        self.frames: list[tuple[str, dict[str, Any]]] = []

    async def send(self, event: str, data: Mapping[str, Any]) -> None:
        self.frames.append((str(getattr(event, "value", event)), dict(data)))

    def events(self) -> list[str]:
        return [event for event, _ in self.frames]

    def payloads(self, event: str) -> list[dict[str, Any]]:
        return [data for name, data in self.frames if name == event]


class BrokenConnection(RecordingConnection):
    """Connection double whose transport is already gone."""

    async def send(self, event: str, data: Mapping[str, Any]) -> None:
        raise ConnectionResetError("socket closed")


class RecordingNotificationSink:
    """Notification sink double; can be told to fail or stall."""

    def __init__(self, *, error: Exception | None = None, delay: float = 0.0) -> None:
        self.calls: list[dict[str, Any]] = []
        self.error = error
        self.delay = delay
        self.closed = False

    async def create_and_send_notification(
        self,
        to_user: str,
        from_user: str | None,
        notification_type: str,
        payload: Mapping[str, Any],
    ) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.calls.append(
            {
                "to_user": to_user,
                "from_user": from_user,
                "type": notification_type,
                "payload": dict(payload),
            }
        )

    async def close(self) -> None:
        self.closed = True


@pytest.fixture()
def database_path(tmp_path: Path) -> Path:
    return tmp_path / "chat.db"


@pytest.fixture()
def sync_engine(database_path: Path) -> Iterator[Engine]:
    engine = create_engine(f"sqlite:///{database_path}")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def db_session(sync_engine: Engine) -> Iterator[Session]:
    """Synchronous session used to seed and inspect rows."""
    with Session(sync_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture()
def session_factory(
    database_path: Path, sync_engine: Engine
) -> async_sessionmaker[AsyncSession]:
    # NullPool keeps connections from leaking between the test loop and the app loop.
    engine = create_async_engine(f"sqlite+aiosqlite:///{database_path}", poolclass=NullPool)
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def chat_settings() -> Settings:
    return settings.model_copy(
        update={
            "notification_timeout_seconds": 0.2,
            "file_base_url": "https://files.example.test/",
            "surface_read_errors": False,
            "enforce_bound_identity": False,
        }
    )


@pytest.fixture()
def presence() -> InMemoryPresenceRegistry:
    return InMemoryPresenceRegistry()


@pytest.fixture()
def notifications() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture()
def services(
    chat_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    presence: InMemoryPresenceRegistry,
    notifications: RecordingNotificationSink,
) -> ChatServices:
    return build_chat_services(
        chat_settings,
        session_factory,
        presence=presence,
        notifications=notifications,
    )


@pytest.fixture()
def app(services: ChatServices) -> Iterator[FastAPI]:
    fastapi_app.dependency_overrides[get_chat_services_dep] = lambda: services
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.pop(get_chat_services_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Return a factory building bearer headers for a user id."""

    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers


@pytest.fixture()
def seed_message(db_session: Session) -> Callable[..., Message]:
    """Return a factory inserting messages with controlled timestamps."""

    def _seed(
        sender_id: str,
        receiver_id: str,
        *,
        minutes: int = 0,
        content: str | None = "hello",
        message_type: MessageType = MessageType.TEXT,
        media_url: str | None = None,
        status: MessageStatus = MessageStatus.SENT,
        deleted: bool = False,
    ) -> Message:
        created_at = BASE_TIME + timedelta(minutes=minutes)
        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            media_url=media_url,
            message_type=message_type,
            status=MessageStatus.DELETED if deleted else status,
            read_at=created_at if status == MessageStatus.READ and not deleted else None,
            deleted_at=created_at if deleted else None,
            deleted_by=sender_id if deleted else None,
            created_at=created_at,
            updated_at=created_at,
        )
        db_session.add(message)
        db_session.commit()
        return message

    return _seed


@pytest.fixture()
def seed_profile(db_session: Session) -> Callable[..., UserProfile]:
    """Return a factory inserting user profiles, optionally with an avatar."""

    def _seed(user_id: str, username: str, avatar_location: str | None = None) -> UserProfile:
        avatar_id = None
        if avatar_location is not None:
            avatar_id = f"file-{user_id}"
            db_session.add(StoredFile(id=avatar_id, location=avatar_location))
        profile = UserProfile(id=user_id, username=username, avatar_file_id=avatar_id)
        db_session.add(profile)
        db_session.commit()
        return profile

    return _seed
