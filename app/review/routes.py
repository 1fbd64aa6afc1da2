"""
app/review/routes.py

Review Routes
Defines API endpoints related to customer reviews:
- Validate a review link before showing the form (Public)
- Submit a review through a review link (Public, token-gated)
- Fetch all reviews received by a worker (Public)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import ReviewPaginationParams
from app.core.limiter import limiter
from app.core.schemas import MessageResponse, PaginatedResponse
from app.database.session import get_db
from app.review import schemas
from app.review.services import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])

DBDep = Annotated[AsyncSession, Depends(get_db)]


# ----------------------------------------------------
# Token-Gated Review Endpoints
# ----------------------------------------------------
@router.get(
    "/validate/{token}",
    response_model=schemas.ReviewTokenValidation,
    status_code=status.HTTP_200_OK,
    summary="Validate Review Link",
    description="Check a review link and return the hire it refers to.",
)
@limiter.limit("20/minute")
async def validate_review_token(
    request: Request,
    token: str,
    db: DBDep,
) -> schemas.ReviewTokenValidation:
    return await ReviewService(db).validate_token(token)


@router.post(
    "/submit",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Submit Review",
    description="Submit the one review allowed for a completed hire using its review link.",
)
@limiter.limit("5/minute")
async def submit_review(
    request: Request,
    payload: schemas.ReviewSubmit,
    db: DBDep,
) -> MessageResponse:
    """Store the review and refresh the worker's rating."""
    await ReviewService(db).submit_review(
        token=payload.token, rating=payload.rating, comment=payload.comment
    )
    return MessageResponse(detail="Thank you for your review.")


# ----------------------------------------------------
# Public Review Endpoints
# ----------------------------------------------------
@router.get(
    "/workers/{worker_id}/reviews",
    response_model=PaginatedResponse[schemas.PublicReviewRead],
    status_code=status.HTTP_200_OK,
    summary="Public Worker Reviews",
    description="Fetch reviews received by a specific worker, newest first (publicly accessible).",
)
@limiter.limit("30/minute")
async def get_public_worker_reviews(
    request: Request,
    worker_id: UUID,
    db: DBDep,
    pagination: ReviewPaginationParams = Depends(),
) -> PaginatedResponse[schemas.PublicReviewRead]:
    """Retrieve public reviews for a specific worker with pagination."""
    reviews, total_count = await ReviewService(db).get_reviews_for_worker(
        worker_id=worker_id, skip=pagination.skip, limit=pagination.limit
    )
    return PaginatedResponse.build(reviews, total_count, pagination.skip, pagination.limit)
