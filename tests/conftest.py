"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.challenges.creator import SystemCreator
from greenquest.challenges.service import create_challenge
from greenquest.database import close_db, get_engine, get_session_factory, init_db
from greenquest.db.base import Base
from greenquest.db.models import Challenge, User
from greenquest.dependencies import get_notifier
from greenquest.main import create_app
from greenquest.notifications import Notifier, PendingNotification
from greenquest.users.service import get_or_create_gamification, get_or_create_user

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingNotifier(Notifier):
    """Notifier that keeps every notification in memory."""

    def __init__(self) -> None:
        super().__init__(None)
        self.sent: list[PendingNotification] = []

    async def notify(self, recipient: int, type_: str, payload: dict[str, Any]) -> None:
        self.sent.append(PendingNotification(recipient, type_, payload))

    def types_for(self, recipient: int) -> list[str]:
        return [n.type for n in self.sent if n.recipient == recipient]


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Fresh in-memory schema per test."""
    await init_db(TEST_DATABASE_URL)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for service tests and assertions."""
    async with get_session_factory()() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Create a user with a gamification row, optionally preloading counters."""

    async def _make(username: str, **counters: Any) -> User:
        user, _ = await get_or_create_user(db_session, username)
        gam = await get_or_create_gamification(db_session, user.id)
        for key, value in counters.items():
            setattr(gam, key, value)
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def make_challenge(db_session: AsyncSession, now: datetime) -> Callable[..., Awaitable[Challenge]]:
    """Create a system challenge that is active at ``now``."""

    async def _make(**overrides: Any) -> Challenge:
        creator = overrides.pop("creator", SystemCreator())
        payload: dict[str, Any] = {
            "title": "Bike to Work",
            "description": "Bike instead of driving",
            "recurrence": "weekly",
            "category": "biking",
            "difficulty": "medium",
            "target": {"value": 5, "unit": "times"},
            "reward": {"points": 100},
            "start_date": now - timedelta(days=1),
            "end_date": None,
        }
        payload.update(overrides)
        challenge = await create_challenge(db_session, payload, creator, now)
        await db_session.commit()
        return challenge

    return _make


@pytest_asyncio.fixture
async def client(database: None, notifier: RecordingNotifier) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app, sharing the test database."""
    app = create_app()
    app.dependency_overrides[get_notifier] = lambda: notifier
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def api_user(database: None) -> User:
    """A committed user for API tests, created outside any request session."""
    async with get_session_factory()() as session:
        user, _ = await get_or_create_user(session, "alice")
        await get_or_create_gamification(session, user.id)
        await session.commit()
        return user
