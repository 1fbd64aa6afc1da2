"""
database/init_db.py

Initializes the database by creating all tables defined in the SQLAlchemy models.
Used for local setups; production schemas are managed outside this service.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from app.database.base import Base
from app.database import models  # noqa: F401  (registers all mappers)
from app.database.session import engine as default_engine

logger = logging.getLogger(__name__)


async def init_db(engine: AsyncEngine | None = None) -> None:
    """
    Creates all database tables based on SQLAlchemy models.
    """
    target = engine or default_engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("[DB] Tables created (if missing)")


if __name__ == "__main__":
    asyncio.run(init_db())
