"""
hire/models.py

Defines the Hire model and associated HireStatus enum.
- Represents one engagement between a client and a worker for a service
- Tracks the dual-confirmation completion flags and completion timestamp
- Embeds the one-time customer review and the reminder bookkeeping
"""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base import Base

# TYPE CHECKING IMPORTS
if TYPE_CHECKING:
    from app.database.models import User
    from app.review.models import Review


# ENUM: Hire Status
class HireStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


REVIEW_COMMENT_MAX_LENGTH = 500


# MODEL: Hire
class Hire(Base):
    __tablename__ = "hires"
    __table_args__ = (
        # completed <=> both flags set <=> completed_at present
        CheckConstraint(
            "(status = 'COMPLETED' AND worker_completed AND client_completed "
            "AND completed_at IS NOT NULL) OR "
            "(status <> 'COMPLETED' AND NOT (worker_completed AND client_completed) "
            "AND completed_at IS NULL)",
            name="completion_consistency",
        ),
        CheckConstraint(
            "review_rating IS NULL OR (review_rating >= 1 AND review_rating <= 5)",
            name="review_rating_range",
        ),
        CheckConstraint("budget IS NULL OR budget >= 0", name="budget_non_negative"),
        Index("ix_hires_client_worker", "client_id", "worker_id"),
        Index("ix_hires_worker_status", "worker_id", "status"),
        Index("ix_hires_completed_reminder", "completed_at", "review_email_sent"),
    )

    # Basic Identifiers & Foreign Keys
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the hire",
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        comment="Client who created the hire",
    )
    worker_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        comment="Worker hired",
    )

    # Service Details
    service: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="Name of the requested service"
    )
    description: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Description of the work requested"
    )
    budget: Mapped[float | None] = mapped_column(
        Float, nullable=True, comment="Optional budget proposed by the client"
    )

    # Status & Dual Confirmation
    status: Mapped[HireStatus] = mapped_column(
        Enum(HireStatus),
        default=HireStatus.PENDING,
        nullable=False,
        comment="Current status of the hire",
    )
    worker_completed: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Worker marked the work as done"
    )
    client_completed: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Client confirmed the work as done"
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Timestamp when both parties had confirmed completion",
    )

    # Review Reminder Bookkeeping
    review_email_sent: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Review reminder dispatched"
    )
    review_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="Timestamp of the review reminder"
    )

    # Embedded Review (immutable once set)
    review_rating: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="Star rating from 1 to 5"
    )
    review_comment: Mapped[str | None] = mapped_column(
        String(REVIEW_COMMENT_MAX_LENGTH), nullable=True, comment="Optional review text"
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="Timestamp when the review was left"
    )

    # Audit Fields
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Timestamp when the hire was created",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Timestamp when the hire was last updated",
    )

    # Relationships
    client: Mapped["User"] = relationship(
        "User", back_populates="created_hires", foreign_keys=[client_id]
    )
    worker: Mapped["User"] = relationship(
        "User", back_populates="assigned_hires", foreign_keys=[worker_id]
    )
    review_record: Mapped[Optional["Review"]] = relationship(
        "Review", back_populates="hire", uselist=False
    )
