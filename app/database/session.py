"""
database/session.py

Async engine, the session factory shared by requests and the reminder job,
and the `get_db` request dependency.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def build_engine(url: str) -> AsyncEngine:
    """Create the async engine; pool sizing only applies to server databases."""
    options: dict[str, Any] = {"echo": settings.DB_ECHO}
    if make_url(url).get_backend_name() != "sqlite":
        options.update(
            pool_pre_ping=True,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    return create_async_engine(url, **options)


engine = build_engine(settings.db_url)

# Rows stay readable after commit; the services re-read when they need fresh state
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield one session per request.

    Anything left uncommitted when the handler raises is rolled back.
    """
    async with AsyncSessionLocal() as db:
        try:
            yield db
        except Exception:
            await db.rollback()
            raise
