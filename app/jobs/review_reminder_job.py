"""
app/jobs/review_reminder_job.py

Review Reminder Background Job

Runs once a day to invite clients to review hires completed five days
earlier. Each reminder carries a signed review link.

Design:
- One run at a time across instances (Redis lock); if Redis is down the
  run proceeds and relies on the per-hire claim
- Each hire is claimed with a conditional UPDATE before sending, so a
  reminder goes out at most once even when runs overlap
- A failed send releases the claim so a later run retries it; a timed-out
  send keeps the claim because the email may still go out
- One hire never blocks the remaining hires
- Never dies: the scheduler loop logs failed runs and waits for the next day

Usage:
    # Started from the FastAPI lifespan in app/main.py
    asyncio.create_task(start_review_reminder_scheduler())
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, time, timedelta, timezone
from uuid import UUID

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.clock import Clock, utc_now
from app.core.config import settings
from app.core.email import Notifier, ReviewReminderPayload, get_notifier
from app.core.redis import LockNotAcquired, distributed_lock
from app.database.session import AsyncSessionLocal
from app.hire.models import Hire, HireStatus
from app.review.tokens import ReviewTokenService, get_review_token_service

logger = logging.getLogger(__name__)

LOCK_NAME = "review_reminder_job"


class ReminderRunSummary(BaseModel):
    """Counters reported by one reminder run."""

    candidates: int = 0
    attempted: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    lock_skipped: bool = False


def reminder_window(
    now: datetime,
    delay_days: int,
    review_window_days: int,
    retry_missed: bool,
) -> tuple[datetime, datetime]:
    """
    Bounds on completed_at for hires that should get a reminder now.

    The upper bound (exclusive) is the end of the UTC day `delay_days` ago.
    The lower bound is the start of that day, or, when `retry_missed` is set,
    the oldest completion still inside the review window (exclusive).
    """
    target_day = (now.astimezone(timezone.utc) - timedelta(days=delay_days)).date()
    day_start = datetime.combine(target_day, time.min, tzinfo=timezone.utc)
    day_end = day_start + timedelta(days=1)
    if retry_missed:
        return now - timedelta(days=review_window_days), day_end
    return day_start, day_end


class ReviewReminderJob:
    """
    Background job that sends one review reminder per completed hire.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        notifier: Notifier | None = None,
        token_service: ReviewTokenService | None = None,
        clock: Clock = utc_now,
        redis_client=None,
    ) -> None:
        self.session_factory = session_factory
        self.notifier = notifier or get_notifier()
        self.token_service = token_service or get_review_token_service()
        self.clock = clock
        self.redis_client = redis_client

    async def run(self, now: datetime | None = None) -> ReminderRunSummary:
        """
        Run one reminder batch.

        Returns:
            ReminderRunSummary: What happened to each candidate hire.
        """
        now = now or self.clock()
        start_time = utc_now()
        logger.info(f"[REMINDER] Starting review reminder run for {now.isoformat()}")

        try:
            async with distributed_lock(
                LOCK_NAME,
                settings.REVIEW_REMINDER_LOCK_TTL_SECONDS,
                client=self.redis_client,
            ):
                summary = await self._run_batch(now)
        except LockNotAcquired:
            logger.info("[REMINDER] Another instance is running the reminder job, skipping.")
            return ReminderRunSummary(lock_skipped=True)

        duration = (utc_now() - start_time).total_seconds()
        logger.info(
            f"[REMINDER] Run completed in {duration:.2f}s: {summary.model_dump()}"
        )
        return summary

    # =======================================================================
    # PRIVATE METHODS
    # =======================================================================

    async def _load_candidates(self, db: AsyncSession, now: datetime) -> list[Hire]:
        lower, upper = reminder_window(
            now,
            delay_days=settings.REVIEW_REMINDER_DELAY_DAYS,
            review_window_days=settings.REVIEW_WINDOW_DAYS,
            retry_missed=settings.REVIEW_REMINDER_RETRY_MISSED,
        )
        lower_bound = (
            Hire.completed_at > lower
            if settings.REVIEW_REMINDER_RETRY_MISSED
            else Hire.completed_at >= lower
        )
        stmt = (
            select(Hire)
            .options(selectinload(Hire.client), selectinload(Hire.worker))
            .filter(
                Hire.status == HireStatus.COMPLETED,
                Hire.worker_completed.is_(True),
                Hire.client_completed.is_(True),
                Hire.review_email_sent.is_(False),
                Hire.completed_at.is_not(None),
                lower_bound,
                Hire.completed_at < upper,
            )
            .order_by(Hire.completed_at)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def _claim(self, db: AsyncSession, hire_id: UUID) -> bool:
        result = await db.execute(
            update(Hire)
            .where(Hire.id == hire_id, Hire.review_email_sent.is_(False))
            .values(review_email_sent=True)
            .execution_options(synchronize_session=False)
        )
        claimed = result.rowcount == 1
        await db.commit()
        return claimed

    async def _release(self, db: AsyncSession, hire_id: UUID) -> None:
        try:
            await db.execute(
                update(Hire)
                .where(Hire.id == hire_id)
                .values(review_email_sent=False, review_sent_at=None)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[REMINDER] Failed to release claim on hire {hire_id}: {e}")

    def _build_payload(self, hire: Hire, now: datetime) -> ReviewReminderPayload | None:
        client, worker = hire.client, hire.worker
        if not client or not client.email or not worker or not worker.full_name:
            logger.warning(f"[REMINDER] Hire {hire.id} missing client email or worker name, skipping.")
            return None

        token = self.token_service.issue(hire.id, hire.client_id, now=now)
        try:
            return ReviewReminderPayload(
                to_email=client.email,
                client_name=client.full_name or client.email,
                worker_name=worker.full_name,
                service=hire.service,
                review_link=f"{settings.FRONTEND_URL.rstrip('/')}/review/{token}",
            )
        except PydanticValidationError as e:
            logger.warning(f"[REMINDER] Hire {hire.id} has an unusable reminder payload: {e}")
            return None

    async def _process(
        self,
        db: AsyncSession,
        hire_id: UUID,
        payload: ReviewReminderPayload | None,
        now: datetime,
        summary: ReminderRunSummary,
    ) -> None:
        if payload is None:
            summary.skipped += 1
            return

        try:
            if not await self._claim(db, hire_id):
                logger.info(f"[REMINDER] Hire {hire_id} already claimed, skipping.")
                summary.skipped += 1
                return
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[REMINDER] Failed to claim hire {hire_id}: {e}")
            summary.failed += 1
            return

        summary.attempted += 1
        try:
            await asyncio.wait_for(
                self.notifier.send_review_reminder(payload),
                timeout=settings.NOTIFIER_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            # The provider call may still complete in its thread; keep the claim
            logger.error(
                f"[REMINDER] Notifier timed out for hire {hire_id}; delivery unknown, keeping claim."
            )
            summary.failed += 1
            return
        except Exception as e:
            logger.error(f"[REMINDER] Notifier failed for hire {hire_id}, releasing claim: {e}")
            await self._release(db, hire_id)
            summary.failed += 1
            return

        summary.sent += 1
        try:
            await db.execute(
                update(Hire)
                .where(Hire.id == hire_id)
                .values(review_sent_at=now)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except SQLAlchemyError as e:
            # The reminder went out; keep the claim so it is not sent twice
            await db.rollback()
            logger.error(f"[REMINDER] Sent reminder for hire {hire_id} but failed to record time: {e}")
            return

        logger.info(f"[REMINDER] Review reminder sent for hire {hire_id}")

    async def _run_batch(self, now: datetime) -> ReminderRunSummary:
        summary = ReminderRunSummary()
        async with self.session_factory() as db:
            candidates = await self._load_candidates(db, now)
            summary.candidates = len(candidates)
            logger.info(f"[REMINDER] Found {len(candidates)} candidate hires")

            # Payloads are built up front; later commits must not touch loaded rows
            prepared = [(hire.id, self._build_payload(hire, now)) for hire in candidates]
            for hire_id, payload in prepared:
                await self._process(db, hire_id, payload, now, summary)
        return summary


async def start_review_reminder_scheduler(job: ReviewReminderJob | None = None) -> None:
    """
    Start the review reminder scheduler.

    Runs the job daily at REVIEW_REMINDER_HOUR_UTC. Called from the
    application lifespan:
        asyncio.create_task(start_review_reminder_scheduler())
    """
    if not settings.REVIEW_REMINDER_ENABLED:
        logger.info("[REMINDER] Review reminder scheduler DISABLED")
        return

    job = job or ReviewReminderJob()
    schedule_hour = settings.REVIEW_REMINDER_HOUR_UTC
    logger.info(f"[REMINDER] Review reminder scheduler STARTED (hour={schedule_hour} UTC)")

    while True:
        try:
            now = utc_now()
            next_run = now.replace(hour=schedule_hour, minute=0, second=0, microsecond=0)
            if now >= next_run:
                next_run += timedelta(days=1)

            sleep_seconds = (next_run - now).total_seconds()
            logger.info(
                f"[REMINDER] Next run at {next_run.isoformat()} (in {sleep_seconds:.0f}s)"
            )
            await asyncio.sleep(sleep_seconds)

            await job.run()

        except asyncio.CancelledError:
            logger.info("[REMINDER] Review reminder scheduler cancelled")
            break
        except Exception as e:
            logger.error(f"[REMINDER] Reminder run failed: {e}", exc_info=True)
            # Avoid a tight loop if something fails right at the scheduled hour
            await asyncio.sleep(60)
