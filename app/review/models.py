"""
review/models.py

Defines the Review model for storing hire-related feedback.
- Denormalized, queryable copy of a hire's embedded review, used for
  worker profile listings and rating aggregation.
- Exactly one review per hire (unique hire_id).
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.schema import CheckConstraint

from app.database.base import Base
from app.hire.models import REVIEW_COMMENT_MAX_LENGTH

if TYPE_CHECKING:
    from app.database.models import User
    from app.hire.models import Hire


class Review(Base):
    """
    Review submitted by a client about a worker for a specific hire.
    Includes a star rating (1-5) and optional comment.
    """

    __tablename__ = "reviews"
    __table_args__ = (CheckConstraint("rating >= 1 AND rating <= 5", name="rating_range"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the review",
    )

    # Review content
    rating: Mapped[int] = mapped_column(Integer, nullable=False, comment="Star rating from 1 to 5")
    comment: Mapped[str] = mapped_column(
        String(REVIEW_COMMENT_MAX_LENGTH),
        nullable=False,
        default="",
        comment="Optional text content of the review",
    )

    # Foreign Keys
    hire_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("hires.id"),
        nullable=False,
        unique=True,
        comment="ID of the reviewed hire",
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        comment="User ID of the client who submitted the review",
    )
    worker_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
        comment="User ID of the worker being reviewed",
    )

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Timestamp when the review was created",
    )

    # -------------------------------------
    # Relationships
    # -------------------------------------
    client: Mapped["User"] = relationship(
        "User",
        back_populates="given_reviews",
        foreign_keys=[client_id],
    )
    worker: Mapped["User"] = relationship(
        "User",
        back_populates="received_reviews",
        foreign_keys=[worker_id],
    )
    hire: Mapped["Hire"] = relationship(
        "Hire",
        back_populates="review_record",
        uselist=False,
    )
