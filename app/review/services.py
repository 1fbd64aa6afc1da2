"""
app/review/services.py

Review Services
Business logic for token-gated customer reviews:
- Validate a review link (Public)
- Submit the one review allowed per completed hire (Public, token-gated)
- Retrieve reviews received by a worker (Public)

A review is accepted only while the hire is completed, unreviewed and
inside the review window. Writing the hire's embedded review and the
Review row happens in one transaction guarded by a conditional UPDATE,
so concurrent submissions for the same hire cannot both succeed.
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.clock import Clock, ensure_utc, utc_now
from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    ExpiredWindowError,
    InvalidTokenError,
    ServerError,
    ValidationError,
)
from app.hire.models import REVIEW_COMMENT_MAX_LENGTH, Hire
from app.hire.schemas import HireReview
from app.review import schemas
from app.review.models import Review
from app.review.rating import RatingAggregator
from app.review.tokens import ReviewTokenClaims, ReviewTokenService, get_review_token_service

logger = logging.getLogger(__name__)

MAX_REVIEWS_PAGE_SIZE = 50
ALREADY_REVIEWED = "already_reviewed"


def _already_reviewed() -> ConflictError:
    return ConflictError("This hire has already been reviewed.", code=ALREADY_REVIEWED)


# ---------------------------------------------------
# Review Service
# ---------------------------------------------------
class ReviewService:
    """Service layer for token-gated reviews."""

    def __init__(
        self,
        db: AsyncSession,
        token_service: ReviewTokenService | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.db = db
        self.token_service = token_service or get_review_token_service()
        self.clock = clock
        self.review_window = timedelta(days=settings.REVIEW_WINDOW_DAYS)

    async def _get_hire(self, hire_id: UUID) -> Hire | None:
        stmt = (
            select(Hire)
            .options(selectinload(Hire.worker))
            .filter(Hire.id == hire_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.unique().scalar_one_or_none()

    def _check_reviewable(self, hire: Hire, claims: ReviewTokenClaims, now: datetime) -> None:
        """Raise the specific error when the hire cannot take a review right now."""
        if hire.client_id != claims.client_id:
            logger.warning(f"[REVIEW] Token client mismatch for hire {hire.id}")
            raise InvalidTokenError()
        if hire.reviewed_at is not None:
            logger.info(f"[REVIEW] Hire {hire.id} already reviewed.")
            raise _already_reviewed()
        completed_at = ensure_utc(hire.completed_at)
        if completed_at is None:
            raise ValidationError("This hire has not been completed yet.")
        if now > completed_at + self.review_window:
            logger.info(f"[REVIEW] Review window closed for hire {hire.id}")
            raise ExpiredWindowError()

    async def _resolve_token(self, token: str, now: datetime) -> tuple[Hire, ReviewTokenClaims]:
        claims = self.token_service.decode(token, now=now)
        hire = await self._get_hire(claims.hire_id)
        if not hire:
            logger.warning(f"[REVIEW] Token references missing hire {claims.hire_id}")
            raise InvalidTokenError()
        self._check_reviewable(hire, claims, now)
        return hire, claims

    # ---------------------------------------------------
    # Token Validation
    # ---------------------------------------------------
    async def validate_token(self, token: str) -> schemas.ReviewTokenValidation:
        """
        Check that a review link is usable and describe the hire it targets.

        Raises:
            InvalidTokenError, ExpiredTokenError: Token problems.
            ConflictError: The hire was already reviewed.
            ValidationError: The hire is not completed.
            ExpiredWindowError: The review window has closed.
        """
        hire, _ = await self._resolve_token(token, self.clock())
        worker = hire.worker
        return schemas.ReviewTokenValidation(
            valid=True,
            hire=schemas.ReviewHireSummary(
                hire_id=hire.id,
                worker=schemas.ReviewUserInfo(
                    id=worker.id, name=worker.full_name, photo=worker.profile_picture
                ),
                service=hire.service,
                description=hire.description,
            ),
        )

    # ---------------------------------------------------
    # Review Submission
    # ---------------------------------------------------
    async def submit_review(self, token: str, rating: int, comment: str | None = "") -> HireReview:
        """
        Submit the review for the hire a token points to, then refresh the
        worker's rating.
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be an integer between 1 and 5.")
        comment = (comment or "").strip()
        if len(comment) > REVIEW_COMMENT_MAX_LENGTH:
            raise ValidationError(
                f"Comment must be at most {REVIEW_COMMENT_MAX_LENGTH} characters."
            )

        now = self.clock()
        hire, claims = await self._resolve_token(token, now)
        hire_id, worker_id = hire.id, hire.worker_id
        logger.info(f"[REVIEW] Submitting review for hire {hire_id}")

        stmt = (
            update(Hire)
            .where(
                Hire.id == hire_id,
                Hire.client_id == claims.client_id,
                Hire.reviewed_at.is_(None),
                Hire.completed_at.is_not(None),
                Hire.completed_at >= now - self.review_window,
            )
            .values(
                review_rating=rating,
                review_comment=comment,
                reviewed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        try:
            result = await self.db.execute(stmt)
            if result.rowcount == 0:
                await self.db.rollback()
                # Lost a race; surface whatever now blocks the review
                fresh = await self._get_hire(hire_id)
                if fresh is None:
                    raise InvalidTokenError()
                self._check_reviewable(fresh, claims, now)
                raise _already_reviewed()

            self.db.add(
                Review(
                    hire_id=hire_id,
                    client_id=claims.client_id,
                    worker_id=worker_id,
                    rating=rating,
                    comment=comment,
                    created_at=now,
                )
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"[REVIEW] Duplicate review rejected for hire {hire_id}: {e}")
            raise _already_reviewed()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[REVIEW] Failed to commit review for hire {hire_id}: {e}", exc_info=True)
            raise ServerError("Failed to submit review.")

        logger.info(f"[REVIEW] Review stored for hire {hire_id}, rating={rating}")
        await RatingAggregator(self.db).recompute(worker_id)

        return HireReview(rating=rating, comment=comment, reviewed_at=now)

    # ---------------------------------------------------
    # Review Retrieval
    # ---------------------------------------------------
    async def get_reviews_for_worker(
        self, worker_id: UUID, skip: int = 0, limit: int = 10
    ) -> tuple[list[schemas.PublicReviewRead], int]:
        """Reviews received by a worker, newest first, with reviewer details."""
        limit = max(1, min(limit, MAX_REVIEWS_PAGE_SIZE))
        logger.info(f"[REVIEW] Retrieving reviews for worker {worker_id} (skip={skip}, limit={limit})")

        total_count = (
            await self.db.execute(
                select(func.count()).select_from(Review).filter(Review.worker_id == worker_id)
            )
        ).scalar_one()

        stmt = (
            select(Review)
            .options(selectinload(Review.client))
            .filter(Review.worker_id == worker_id)
            .order_by(Review.created_at.desc(), Review.id)
            .offset(skip)
            .limit(limit)
        )
        reviews = (await self.db.execute(stmt)).scalars().all()

        items = [
            schemas.PublicReviewRead(
                id=review.id,
                hire_id=review.hire_id,
                reviewer=schemas.ReviewUserInfo(
                    id=review.client.id,
                    name=review.client.full_name,
                    photo=review.client.profile_picture,
                ),
                rating=review.rating,
                comment=review.comment or "",
                created_at=ensure_utc(review.created_at),
            )
            for review in reviews
        ]
        return items, total_count
