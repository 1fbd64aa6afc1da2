"""
review/rating.py

Worker rating aggregation.

Keeps the denormalized `rating` and `total_jobs` fields on the worker's
User row in sync with the Review table. Recomputed from scratch after
every review insert.
"""

import logging
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import User
from app.review.models import Review

logger = logging.getLogger(__name__)

_ONE_DECIMAL = Decimal("0.1")


def average_rating(ratings: Iterable[int]) -> tuple[float, int]:
    """
    Mean of the ratings rounded half-up to one decimal, and their count.

    No ratings gives (0.0, 0).
    """
    values = list(ratings)
    if not values:
        return 0.0, 0
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP)), len(values)


class RatingAggregator:
    """Recomputes a worker's rating summary from their reviews."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def recompute(self, worker_id: UUID) -> tuple[float, int] | None:
        """
        Recalculate and persist the worker's rating and total_jobs.

        Returns the new (rating, total_jobs), or None when the update failed.
        A failure is logged and rolled back; reviews already committed stay.
        """
        try:
            result = await self.db.execute(
                select(Review.rating).filter(Review.worker_id == worker_id)
            )
            rating, total_jobs = average_rating(result.scalars().all())

            await self.db.execute(
                update(User)
                .where(User.id == worker_id)
                .values(rating=rating, total_jobs=total_jobs)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[RATING] Failed to recompute rating for worker {worker_id}: {e}")
            return None

        logger.info(f"[RATING] Worker {worker_id} rating={rating} total_jobs={total_jobs}")
        return rating, total_jobs
