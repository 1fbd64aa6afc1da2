"""
app/database/models.py

Core SQLAlchemy ORM Models

Defines:
- User: Platform user accounts with role-based access

The user aggregate (profiles, credentials, billing) is owned by external
services. This core reads identity, role and subscription tier, and writes
only the denormalized `rating` and `total_jobs` fields.

Includes relationships with:
- Hire (created_hires and assigned_hires)
- Review (given_reviews and received_reviews)
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Float, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base import Base
from app.database.enums import SubscriptionTier, UserRole
from app.hire.models import Hire
from app.review.models import Review

# ---------------------------------------------------
# User Model: Platform User
# ---------------------------------------------------


class User(Base):
    __tablename__ = "users"

    # -------------------------------------
    # Fields
    # -------------------------------------
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the user",
    )
    email: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True, comment="User's email address"
    )
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), nullable=False, comment="User role (CLIENT, WORKER, ADMIN)"
    )
    first_name: Mapped[str | None] = mapped_column(
        String(100), nullable=True, comment="User's first name"
    )
    last_name: Mapped[str | None] = mapped_column(
        String(100), nullable=True, comment="User's last name"
    )
    profile_picture: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="URL of user's profile picture (optional)"
    )
    subscription_tier: Mapped[SubscriptionTier] = mapped_column(
        Enum(SubscriptionTier),
        nullable=False,
        default=SubscriptionTier.FREE,
        comment="Subscription plan tier (managed by billing)",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, comment="Whether the user account is active"
    )

    # Denormalized review aggregates (maintained by RatingAggregator)
    rating: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0, comment="Average review rating (1 decimal)"
    )
    total_jobs: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Number of reviewed jobs"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        comment="Timestamp when the user was created",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        comment="Timestamp when the user was last updated",
    )

    # -------------------------------------
    # Relationships
    # -------------------------------------

    # One-to-Many: Hires created by this user as a client
    created_hires: Mapped[list["Hire"]] = relationship(
        "Hire", back_populates="client", foreign_keys="Hire.client_id"
    )

    # One-to-Many: Hires assigned to this user as a worker
    assigned_hires: Mapped[list["Hire"]] = relationship(
        "Hire", back_populates="worker", foreign_keys="Hire.worker_id"
    )

    # One-to-Many: Reviews written by this user (as a client)
    given_reviews: Mapped[list["Review"]] = relationship(
        "Review", back_populates="client", foreign_keys="Review.client_id"
    )

    # One-to-Many: Reviews received by this user (as a worker)
    received_reviews: Mapped[list["Review"]] = relationship(
        "Review", back_populates="worker", foreign_keys="Review.worker_id"
    )

    # -------------------------------------
    # Derived Properties
    # -------------------------------------
    @property
    def full_name(self) -> str:
        """Display name built from first and last name."""
        return " ".join(part for part in (self.first_name, self.last_name) if part)
