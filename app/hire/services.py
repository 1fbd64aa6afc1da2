"""
app/hire/services.py

Hire Service Layer
Implements the hire lifecycle between a client and a worker:
- Create a hire (Authenticated Client, subscription-gated)
- Accept or reject a pending hire (Assigned Worker)
- Mark the work as completed (Assigned Worker)
- Confirm completion (Assigned Client)
- List hires for the current user and completed hires for a client

Every state change is a single conditional UPDATE keyed by hire id whose
WHERE clause encodes the expected current state. The affected row count
decides which of two concurrent requests wins; the loser re-reads the row
and gets the specific conflict.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import DateTime, Update, case, func, literal, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.clock import Clock, ensure_utc, utc_now
from app.core.config import settings
from app.core.email import Notifier, get_notifier
from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from app.database.enums import UserRole
from app.database.models import User
from app.hire import schemas
from app.hire.models import Hire, HireStatus

logger = logging.getLogger(__name__)

WORKER_DECISIONS = frozenset({HireStatus.ACCEPTED, HireStatus.REJECTED})


# ---------------------------------------------------
# Entitlement Policy
# ---------------------------------------------------
class HireEntitlementPolicy(Protocol):
    def can_hire(self, client: User) -> bool: ...


class SubscriptionTierPolicy:
    """Allows hiring for clients on one of the entitled subscription tiers."""

    def __init__(self, tiers: set[str] | None = None) -> None:
        self.tiers = tiers if tiers is not None else settings.hire_entitled_tiers

    def can_hire(self, client: User) -> bool:
        return client.subscription_tier.value in self.tiers


# ---------------------------------------------------
# Hire Service
# ---------------------------------------------------
class HireService:
    """Service class for hire lifecycle business logic."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: Notifier | None = None,
        clock: Clock = utc_now,
        entitlement_policy: HireEntitlementPolicy | None = None,
    ) -> None:
        self.db = db
        self.notifier = notifier or get_notifier()
        self.clock = clock
        self.entitlement_policy = entitlement_policy or SubscriptionTierPolicy()

    async def _get_hire_with_relations_or_404(self, hire_id: UUID) -> Hire:
        """Helper to retrieve a hire with its client and worker or raise 404."""
        stmt = (
            select(Hire)
            .options(selectinload(Hire.client), selectinload(Hire.worker))
            .filter(Hire.id == hire_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        hire = result.unique().scalar_one_or_none()
        if not hire:
            logger.warning(f"[HIRE] Hire not found: hire_id={hire_id}")
            raise NotFoundError("Hire not found.")
        return hire

    def _construct_hire_read(self, hire: Hire) -> schemas.HireRead:
        """Helper to construct HireRead schema from a Hire model instance."""
        review: schemas.HireReview | None = None
        if hire.reviewed_at is not None and hire.review_rating is not None:
            review = schemas.HireReview(
                rating=hire.review_rating,
                comment=hire.review_comment or "",
                reviewed_at=ensure_utc(hire.reviewed_at),
            )

        return schemas.HireRead(
            id=hire.id,
            client=schemas.HireUserInfo.model_validate(hire.client),
            worker=schemas.HireUserInfo.model_validate(hire.worker),
            service=hire.service,
            description=hire.description,
            budget=hire.budget,
            status=hire.status,
            worker_completed=hire.worker_completed,
            client_completed=hire.client_completed,
            completed_at=ensure_utc(hire.completed_at),
            review=review,
            created_at=ensure_utc(hire.created_at),
            updated_at=ensure_utc(hire.updated_at),
        )

    async def _apply_transition(self, stmt: Update, hire_id: UUID) -> int:
        """Execute a conditional update and commit; returns the affected row count."""
        try:
            result = await self.db.execute(stmt.execution_options(synchronize_session=False))
            updated = result.rowcount
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[HIRE] Transition failed for hire {hire_id}: {e}", exc_info=True)
            raise ServerError("Failed to update hire.")
        return updated

    @staticmethod
    def _completion_values(other_flag: Any, now: datetime) -> dict[str, Any]:
        """
        SET clause for the second-completion rule: when the other party has
        already completed, the same statement finishes the hire.
        """
        return {
            "status": case(
                (other_flag.is_(True), literal(HireStatus.COMPLETED, Hire.__table__.c.status.type)),
                else_=Hire.status,
            ),
            "completed_at": case(
                (other_flag.is_(True), literal(now, DateTime(timezone=True))),
                else_=Hire.completed_at,
            ),
            "updated_at": now,
        }

    async def _notify_worker_of_hire(self, hire: Hire) -> None:
        """Best-effort hire notification; failures are logged only."""
        worker = hire.worker
        if not worker.email:
            logger.info(f"[HIRE] Worker {worker.id} has no email, skipping hire notification.")
            return
        try:
            await asyncio.wait_for(
                self.notifier.send_hire_created(
                    to_email=worker.email,
                    worker_name=worker.full_name,
                    client_name=hire.client.full_name,
                    service=hire.service,
                ),
                timeout=settings.NOTIFIER_TIMEOUT_SECONDS,
            )
        except Exception as e:
            logger.warning(f"[HIRE] Hire notification failed for hire {hire.id}: {e}")

    # ---------------------------------------------------
    # Hire Creation
    # ---------------------------------------------------
    async def create_hire(self, client_id: UUID, payload: schemas.HireCreate) -> schemas.HireRead:
        """Client hires a worker for a service. The new hire starts as PENDING."""
        logger.info(f"[HIRE] Client {client_id} hiring worker {payload.worker_id}")

        service = (payload.service or "").strip()
        description = (payload.description or "").strip()
        if not service or not description:
            raise ValidationError("Service and description are required.")
        if payload.budget is not None and payload.budget < 0:
            raise ValidationError("Budget cannot be negative.")

        client = await self.db.get(User, client_id)
        if not client:
            raise NotFoundError("Client not found.")

        if payload.worker_id == client_id:
            logger.warning(f"[HIRE] Client {client_id} attempted to hire themself.")
            raise AuthorizationError("You cannot hire yourself.")

        worker = await self.db.get(User, payload.worker_id)
        if not worker or worker.role != UserRole.WORKER or not worker.is_active:
            logger.warning(f"[HIRE] Worker not found or not hireable: {payload.worker_id}")
            raise NotFoundError("Worker not found.")

        if not self.entitlement_policy.can_hire(client):
            logger.warning(
                f"[HIRE] Client {client_id} on tier {client.subscription_tier} is not entitled to hire."
            )
            raise AuthorizationError("An active subscription is required to hire workers.")

        now = self.clock()
        hire = Hire(
            client_id=client_id,
            worker_id=worker.id,
            service=service,
            description=description,
            budget=payload.budget,
            status=HireStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self.db.add(hire)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[HIRE] Error committing hire creation: {e}", exc_info=True)
            raise ServerError("Failed to create hire.")

        hire = await self._get_hire_with_relations_or_404(hire.id)
        logger.info(f"[HIRE] Hire created: hire_id={hire.id}")

        await self._notify_worker_of_hire(hire)
        return self._construct_hire_read(hire)

    # ---------------------------------------------------
    # Worker Decision
    # ---------------------------------------------------
    async def update_status(
        self, hire_id: UUID, actor_id: UUID, new_status: HireStatus
    ) -> schemas.HireRead:
        """Assigned worker accepts or rejects a PENDING hire."""
        logger.info(f"[HIRE] Worker {actor_id} setting hire {hire_id} to {new_status}")

        hire = await self._get_hire_with_relations_or_404(hire_id)
        if hire.worker_id != actor_id:
            raise AuthorizationError("Only the assigned worker can update this hire.")
        if new_status not in WORKER_DECISIONS:
            raise ValidationError("Status must be ACCEPTED or REJECTED.")
        if hire.status != HireStatus.PENDING:
            raise ConflictError(f"Hire is already {hire.status.value.lower()}.")

        stmt = (
            update(Hire)
            .where(
                Hire.id == hire_id,
                Hire.worker_id == actor_id,
                Hire.status == HireStatus.PENDING,
            )
            .values(status=new_status, updated_at=self.clock())
        )
        updated = await self._apply_transition(stmt, hire_id)

        hire = await self._get_hire_with_relations_or_404(hire_id)
        if not updated:
            logger.info(f"[HIRE] Lost status race on hire {hire_id}, now {hire.status}")
            raise ConflictError(f"Hire is already {hire.status.value.lower()}.")

        logger.info(f"[HIRE] Hire {hire_id} is now {hire.status}")
        return self._construct_hire_read(hire)

    # ---------------------------------------------------
    # Dual Confirmation
    # ---------------------------------------------------
    @staticmethod
    def _worker_completion_conflict(hire: Hire) -> str | None:
        if hire.worker_completed:
            return "You have already marked this hire as completed."
        if hire.status != HireStatus.ACCEPTED:
            return "Only accepted hires can be marked as completed."
        return None

    @staticmethod
    def _client_completion_conflict(hire: Hire) -> str | None:
        if hire.client_completed:
            return "You have already confirmed completion of this hire."
        if not hire.worker_completed or hire.status != HireStatus.ACCEPTED:
            return "The worker has not marked this hire as completed yet."
        return None

    async def mark_worker_completed(self, hire_id: UUID, actor_id: UUID) -> schemas.HireRead:
        """Assigned worker marks the work as done."""
        logger.info(f"[HIRE] Worker {actor_id} marking hire {hire_id} completed")

        hire = await self._get_hire_with_relations_or_404(hire_id)
        if hire.worker_id != actor_id:
            raise AuthorizationError("Only the assigned worker can complete this hire.")
        conflict = self._worker_completion_conflict(hire)
        if conflict:
            raise ConflictError(conflict)

        stmt = (
            update(Hire)
            .where(
                Hire.id == hire_id,
                Hire.worker_id == actor_id,
                Hire.status == HireStatus.ACCEPTED,
                Hire.worker_completed.is_(False),
            )
            .values(
                worker_completed=True,
                **self._completion_values(Hire.client_completed, self.clock()),
            )
        )
        updated = await self._apply_transition(stmt, hire_id)

        hire = await self._get_hire_with_relations_or_404(hire_id)
        if not updated:
            raise ConflictError(
                self._worker_completion_conflict(hire) or "Hire state changed, please retry."
            )

        logger.info(
            f"[HIRE] Worker completion recorded for hire {hire_id}, status={hire.status}"
        )
        return self._construct_hire_read(hire)

    async def confirm_client_completion(self, hire_id: UUID, actor_id: UUID) -> schemas.HireRead:
        """Assigned client confirms the worker's completion."""
        logger.info(f"[HIRE] Client {actor_id} confirming completion of hire {hire_id}")

        hire = await self._get_hire_with_relations_or_404(hire_id)
        if hire.client_id != actor_id:
            raise AuthorizationError("Only the client who created this hire can confirm it.")
        conflict = self._client_completion_conflict(hire)
        if conflict:
            raise ConflictError(conflict)

        stmt = (
            update(Hire)
            .where(
                Hire.id == hire_id,
                Hire.client_id == actor_id,
                Hire.status == HireStatus.ACCEPTED,
                Hire.worker_completed.is_(True),
                Hire.client_completed.is_(False),
            )
            .values(
                client_completed=True,
                **self._completion_values(Hire.worker_completed, self.clock()),
            )
        )
        updated = await self._apply_transition(stmt, hire_id)

        hire = await self._get_hire_with_relations_or_404(hire_id)
        if not updated:
            raise ConflictError(
                self._client_completion_conflict(hire) or "Hire state changed, please retry."
            )

        logger.info(f"[HIRE] Client confirmation recorded for hire {hire_id}, status={hire.status}")
        return self._construct_hire_read(hire)

    # ---------------------------------------------------
    # Hire Listings
    # ---------------------------------------------------
    async def get_hires_for_user(
        self, user_id: UUID, skip: int = 0, limit: int = 20
    ) -> tuple[list[schemas.HireRead], int]:
        """Hires where the user is the client or the worker, newest first."""
        logger.info(f"[HIRE] Listing hires for user {user_id} (skip={skip}, limit={limit})")
        condition = or_(Hire.client_id == user_id, Hire.worker_id == user_id)

        total_count = (
            await self.db.execute(select(func.count()).select_from(Hire).filter(condition))
        ).scalar_one()

        stmt = (
            select(Hire)
            .options(selectinload(Hire.client), selectinload(Hire.worker))
            .filter(condition)
            .order_by(Hire.created_at.desc(), Hire.id)
            .offset(skip)
            .limit(limit)
        )
        hires = (await self.db.execute(stmt)).scalars().all()
        return [self._construct_hire_read(h) for h in hires], total_count

    async def get_completed_hires_for_client(
        self, client_id: UUID, skip: int = 0, limit: int = 20
    ) -> tuple[list[schemas.HireRead], int]:
        """Client's completed hires, most recently completed first."""
        logger.info(f"[HIRE] Listing completed hires for client {client_id}")
        condition = (Hire.client_id == client_id) & (Hire.status == HireStatus.COMPLETED)

        total_count = (
            await self.db.execute(select(func.count()).select_from(Hire).filter(condition))
        ).scalar_one()

        stmt = (
            select(Hire)
            .options(selectinload(Hire.client), selectinload(Hire.worker))
            .filter(condition)
            .order_by(Hire.completed_at.desc(), Hire.id)
            .offset(skip)
            .limit(limit)
        )
        hires = (await self.db.execute(stmt)).scalars().all()
        return [self._construct_hire_read(h) for h in hires], total_count
