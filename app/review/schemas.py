"""
app/review/schemas.py

Review Schemas
Defines Pydantic schemas for token-gated customer reviews:
- ReviewSubmit: Token plus rating and optional comment
- ReviewTokenValidation: Result of validating a review link
- PublicReviewRead: Public view of a review on a worker profile
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.hire.models import REVIEW_COMMENT_MAX_LENGTH


# ---------------------------------------------------
# Partial Schemas for Embedding in Review Responses
# ---------------------------------------------------
class ReviewUserInfo(BaseModel):
    """Public identity of a reviewer or reviewed worker."""

    id: UUID = Field(..., description="User's unique identifier")
    name: str = Field(..., description="Display name")
    photo: str | None = Field(default=None, description="Profile picture URL")


class ReviewHireSummary(BaseModel):
    """Public projection of the hire a review link points to."""

    hire_id: UUID = Field(..., description="Hire being reviewed")
    worker: ReviewUserInfo = Field(..., description="Worker being reviewed")
    service: str = Field(..., description="Hired service")
    description: str = Field(..., description="Description of the work")


# ---------------------------------------------------
# Schema for Submitting a Review (Token-Gated)
# ---------------------------------------------------
class ReviewSubmit(BaseModel):
    """Payload used when a client submits a review through a review link."""

    model_config = ConfigDict(str_strip_whitespace=True)

    token: str = Field(..., min_length=1, description="Review token from the reminder link")
    rating: Annotated[int, Field(ge=1, le=5, description="Rating from 1 (lowest) to 5 (highest)")]
    comment: str | None = Field(
        default="",
        max_length=REVIEW_COMMENT_MAX_LENGTH,
        description="Optional text feedback from the client",
    )


# ---------------------------------------------------
# Schema for Token Validation Result
# ---------------------------------------------------
class ReviewTokenValidation(BaseModel):
    """Response for a valid review link."""

    valid: bool = Field(True, description="Whether the link can be used")
    hire: ReviewHireSummary = Field(..., description="Hire the link refers to")


# ---------------------------------------------------
# Schema for Public View of a Review
# ---------------------------------------------------
class PublicReviewRead(BaseModel):
    """Schema for public view of a review, excluding sensitive information."""

    id: UUID = Field(..., description="Review ID")
    hire_id: UUID = Field(..., description="Reviewed hire")
    reviewer: ReviewUserInfo = Field(..., description="Client who wrote the review")
    rating: int = Field(..., description="Star rating given by the client (1-5)")
    comment: str = Field(default="", description="Optional textual feedback")
    created_at: datetime = Field(..., description="Timestamp when the review was created")

    model_config = ConfigDict(from_attributes=True)
