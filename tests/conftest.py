"""
tests/conftest.py

Test fixtures for API integration and unit tests.
Includes async clients, a temporary SQLite database, fake users,
a controllable clock, a recording notifier and dependency overrides.
"""

import os

# Settings are read at import time; configure the test environment first.
os.environ.update(
    {
        "FRONTEND_URL": "http://frontend.test",
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "SECRET_KEY": "test-secret-key",
        "REVIEW_TOKEN_SECRET": "test-review-secret",
        "MAIL_FROM": "noreply@example.com",
        "SUPPORT_EMAIL": "support@example.com",
        "EMAILS_ENABLED": "false",
        "RATE_LIMIT_ENABLED": "false",
        "REVIEW_REMINDER_ENABLED": "false",
        "AUTO_CREATE_TABLES": "false",
    }
)

# --- Imports ---
import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.dependencies import get_current_user
from app.core.email import NotificationError, ReviewReminderPayload
from app.database.base import Base
from app.database.enums import SubscriptionTier, UserRole
from app.database.models import User
from app.database.session import get_db
from app.hire.models import Hire, HireStatus
from app.main import app
from app.review.tokens import ReviewTokenService

TEST_REVIEW_SECRET = "test-review-secret"


# --- Test Doubles ---


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeNotifier:
    """Records notifications; can be told to fail or hang for given recipients."""

    def __init__(self) -> None:
        self.reminders: list[ReviewReminderPayload] = []
        self.hire_created: list[dict[str, str]] = []
        self.fail_for: set[str] = set()
        self.hang_for: set[str] = set()

    async def send_review_reminder(self, payload: ReviewReminderPayload) -> None:
        if payload.to_email in self.hang_for:
            await asyncio.sleep(3600)
        if payload.to_email in self.fail_for:
            raise NotificationError(f"delivery to {payload.to_email} failed")
        self.reminders.append(payload)

    async def send_hire_created(
        self, *, to_email: str, worker_name: str, client_name: str, service: str
    ) -> None:
        if to_email in self.fail_for:
            raise NotificationError(f"delivery to {to_email} failed")
        self.hire_created.append(
            {
                "to_email": to_email,
                "worker_name": worker_name,
                "client_name": client_name,
                "service": service,
            }
        )


# --- Core Test Fixtures ---


@pytest.fixture(scope="session")
def transport() -> ASGITransport:
    """Fixture for ASGI transport."""
    return ASGITransport(app=app)


@pytest_asyncio.fixture(scope="function")
async def async_client(transport: ASGITransport) -> AsyncGenerator[AsyncClient, None]:
    """Fixture for HTTP async client."""
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now: datetime) -> FrozenClock:
    return FrozenClock(fixed_now)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def token_service(clock: FrozenClock) -> ReviewTokenService:
    return ReviewTokenService(secret=TEST_REVIEW_SECRET, clock=clock)


# --- Database Fixtures ---


@pytest_asyncio.fixture
async def db_engine(tmp_path: Any) -> AsyncGenerator[Any, None]:
    """File-backed SQLite so concurrent sessions use separate connections."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False, poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: Any) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
    )


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


async def _persist_user(
    session_factory: async_sessionmaker[AsyncSession], **fields: Any
) -> User:
    user = User(id=uuid4(), is_active=True, rating=0.0, total_jobs=0, **fields)
    async with session_factory() as session:
        session.add(user)
        await session.commit()
    return user


@pytest_asyncio.fixture
async def client_user(session_factory: async_sessionmaker[AsyncSession]) -> User:
    """Persisted client on the FEATURED tier."""
    return await _persist_user(
        session_factory,
        email="ada.client@example.com",
        role=UserRole.CLIENT,
        first_name="Ada",
        last_name="Client",
        subscription_tier=SubscriptionTier.FEATURED,
    )


@pytest_asyncio.fixture
async def free_client_user(session_factory: async_sessionmaker[AsyncSession]) -> User:
    """Persisted client on the FREE tier."""
    return await _persist_user(
        session_factory,
        email="free.client@example.com",
        role=UserRole.CLIENT,
        first_name="Free",
        last_name="Client",
        subscription_tier=SubscriptionTier.FREE,
    )


@pytest_asyncio.fixture
async def worker_user(session_factory: async_sessionmaker[AsyncSession]) -> User:
    """Persisted worker."""
    return await _persist_user(
        session_factory,
        email="bola.worker@example.com",
        role=UserRole.WORKER,
        first_name="Bola",
        last_name="Worker",
        profile_picture="https://cdn.example.com/bola.png",
        subscription_tier=SubscriptionTier.FREE,
    )


@pytest_asyncio.fixture
async def other_user(session_factory: async_sessionmaker[AsyncSession]) -> User:
    """Persisted worker unrelated to the hires under test."""
    return await _persist_user(
        session_factory,
        email="other.worker@example.com",
        role=UserRole.WORKER,
        first_name="Other",
        last_name="Worker",
        subscription_tier=SubscriptionTier.FREE,
    )


@pytest.fixture
def hire_factory(
    session_factory: async_sessionmaker[AsyncSession], fixed_now: datetime
) -> Callable[..., Awaitable[Hire]]:
    """Insert a hire directly, bypassing the lifecycle (for setting up states)."""

    async def _create(
        client: User,
        worker: User,
        status: HireStatus = HireStatus.PENDING,
        completed_at: datetime | None = None,
        **fields: Any,
    ) -> Hire:
        completed = status == HireStatus.COMPLETED
        if completed and completed_at is None:
            completed_at = fixed_now
        values: dict[str, Any] = {
            "id": uuid4(),
            "client_id": client.id,
            "worker_id": worker.id,
            "service": "Plumbing",
            "description": "Fix the kitchen sink",
            "status": status,
            "worker_completed": completed,
            "client_completed": completed,
            "completed_at": completed_at if completed else None,
            "review_email_sent": False,
            "created_at": fixed_now - timedelta(days=30),
            "updated_at": fixed_now - timedelta(days=30),
        }
        values.update(fields)
        hire = Hire(**values)
        async with session_factory() as session:
            session.add(hire)
            await session.commit()
        return hire

    return _create


# --- Fake User Fixtures (not persisted) ---


@pytest.fixture
def fake_client_user() -> User:
    """Fixture for a fake client user."""
    return User(
        id=uuid4(),
        email="client.test@example.com",
        role=UserRole.CLIENT,
        first_name="Client",
        last_name="Test",
        subscription_tier=SubscriptionTier.FEATURED,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
        is_active=True,
    )


@pytest.fixture
def fake_worker_user() -> User:
    """Fixture for a fake worker user."""
    return User(
        id=uuid4(),
        email="worker.test@example.com",
        role=UserRole.WORKER,
        first_name="Worker",
        last_name="Test",
        subscription_tier=SubscriptionTier.FREE,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
        is_active=True,
    )


# --- Dependency Override Fixtures ---


@pytest_asyncio.fixture
async def override_get_db() -> AsyncGenerator[None, None]:
    """Override for the database dependency."""

    async def _override() -> AsyncGenerator[AsyncMock, None]:
        yield AsyncMock()

    app.dependency_overrides[get_db] = _override
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest_asyncio.fixture
async def mock_current_client_user(fake_client_user: User) -> AsyncGenerator[User, None]:
    """Mock the current user as a client."""
    app.dependency_overrides[get_current_user] = lambda: fake_client_user
    yield fake_client_user
    app.dependency_overrides.pop(get_current_user, None)


@pytest_asyncio.fixture
async def mock_current_worker_user(fake_worker_user: User) -> AsyncGenerator[User, None]:
    """Mock the current user as a worker."""
    app.dependency_overrides[get_current_user] = lambda: fake_worker_user
    yield fake_worker_user
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def override_db_with_test_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> Generator[None, None, None]:
    """Route requests to the temporary SQLite database."""

    async def _override() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override
    yield
    app.dependency_overrides.pop(get_db, None)
