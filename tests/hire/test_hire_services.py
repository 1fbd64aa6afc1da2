# tests/hire/test_hire_services.py
import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.hire.models import Hire, HireStatus
from app.hire.schemas import HireCreate
from app.hire.services import HireService, SubscriptionTierPolicy


def _service(session, notifier, clock, **kwargs) -> HireService:
    return HireService(session, notifier=notifier, clock=clock, **kwargs)


def _payload(worker_id, **overrides) -> HireCreate:
    data = {
        "worker_id": worker_id,
        "service": "  Plumbing  ",
        "description": "  Fix the kitchen sink  ",
        "budget": 150.0,
    }
    data.update(overrides)
    return HireCreate.model_construct(**data)


async def _load_hire(session_factory, hire_id) -> Hire:
    async with session_factory() as session:
        return (await session.execute(select(Hire).filter(Hire.id == hire_id))).scalar_one()


# --- Creation ---


@pytest.mark.asyncio
async def test_create_hire_starts_pending_with_trimmed_fields(
    db_session, client_user, worker_user, notifier, clock
) -> None:
    hire = await _service(db_session, notifier, clock).create_hire(
        client_id=client_user.id, payload=_payload(worker_user.id)
    )

    assert hire.status == HireStatus.PENDING
    assert hire.service == "Plumbing"
    assert hire.description == "Fix the kitchen sink"
    assert hire.budget == 150.0
    assert hire.client.id == client_user.id
    assert hire.worker.id == worker_user.id
    assert hire.worker_completed is False and hire.client_completed is False
    assert hire.completed_at is None
    assert hire.review is None


@pytest.mark.asyncio
async def test_create_hire_notifies_worker(
    db_session, client_user, worker_user, notifier, clock
) -> None:
    await _service(db_session, notifier, clock).create_hire(
        client_id=client_user.id, payload=_payload(worker_user.id)
    )

    assert notifier.hire_created == [
        {
            "to_email": worker_user.email,
            "worker_name": "Bola Worker",
            "client_name": "Ada Client",
            "service": "Plumbing",
        }
    ]


@pytest.mark.asyncio
async def test_create_hire_succeeds_when_notification_fails(
    db_session, client_user, worker_user, notifier, clock
) -> None:
    notifier.fail_for.add(worker_user.email)

    hire = await _service(db_session, notifier, clock).create_hire(
        client_id=client_user.id, payload=_payload(worker_user.id)
    )

    assert hire.status == HireStatus.PENDING
    assert notifier.hire_created == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"service": "   "},
        {"description": ""},
        {"budget": -1.0},
    ],
)
async def test_create_hire_rejects_invalid_input(
    db_session, client_user, worker_user, notifier, clock, overrides
) -> None:
    with pytest.raises(ValidationError):
        await _service(db_session, notifier, clock).create_hire(
            client_id=client_user.id, payload=_payload(worker_user.id, **overrides)
        )


@pytest.mark.asyncio
async def test_create_hire_unknown_worker(db_session, client_user, notifier, clock) -> None:
    with pytest.raises(NotFoundError):
        await _service(db_session, notifier, clock).create_hire(
            client_id=client_user.id, payload=_payload(uuid4())
        )


@pytest.mark.asyncio
async def test_create_hire_target_must_be_worker(
    db_session, client_user, free_client_user, notifier, clock
) -> None:
    with pytest.raises(NotFoundError):
        await _service(db_session, notifier, clock).create_hire(
            client_id=client_user.id, payload=_payload(free_client_user.id)
        )


@pytest.mark.asyncio
async def test_create_hire_requires_entitlement(
    db_session, free_client_user, worker_user, notifier, clock
) -> None:
    with pytest.raises(AuthorizationError):
        await _service(db_session, notifier, clock).create_hire(
            client_id=free_client_user.id, payload=_payload(worker_user.id)
        )


@pytest.mark.asyncio
async def test_create_hire_custom_entitlement_policy(
    db_session, free_client_user, worker_user, notifier, clock
) -> None:
    service = _service(
        db_session, notifier, clock, entitlement_policy=SubscriptionTierPolicy({"FREE"})
    )
    hire = await service.create_hire(
        client_id=free_client_user.id, payload=_payload(worker_user.id)
    )
    assert hire.status == HireStatus.PENDING


@pytest.mark.asyncio
async def test_create_hire_cannot_hire_self(db_session, client_user, notifier, clock) -> None:
    with pytest.raises(AuthorizationError):
        await _service(db_session, notifier, clock).create_hire(
            client_id=client_user.id, payload=_payload(client_user.id)
        )


# --- Full lifecycle ---


@pytest.mark.asyncio
async def test_hire_lifecycle_requires_both_confirmations(
    db_session, client_user, worker_user, notifier, clock, fixed_now
) -> None:
    service = _service(db_session, notifier, clock)
    hire = await service.create_hire(client_id=client_user.id, payload=_payload(worker_user.id))

    accepted = await service.update_status(hire.id, worker_user.id, HireStatus.ACCEPTED)
    assert accepted.status == HireStatus.ACCEPTED

    clock.advance(days=2)
    worker_done = await service.mark_worker_completed(hire.id, worker_user.id)
    assert worker_done.worker_completed is True
    assert worker_done.status == HireStatus.ACCEPTED
    assert worker_done.completed_at is None

    clock.advance(hours=3)
    completed = await service.confirm_client_completion(hire.id, client_user.id)
    assert completed.status == HireStatus.COMPLETED
    assert completed.worker_completed is True and completed.client_completed is True
    assert completed.completed_at == fixed_now + timedelta(days=2, hours=3)


@pytest.mark.asyncio
async def test_worker_can_reject_pending_hire(
    db_session, client_user, worker_user, notifier, clock, hire_factory
) -> None:
    hire = await hire_factory(client_user, worker_user)

    rejected = await _service(db_session, notifier, clock).update_status(
        hire.id, worker_user.id, HireStatus.REJECTED
    )

    assert rejected.status == HireStatus.REJECTED


# --- Status update errors ---


@pytest.mark.asyncio
async def test_update_status_missing_hire(db_session, worker_user, notifier, clock) -> None:
    with pytest.raises(NotFoundError):
        await _service(db_session, notifier, clock).update_status(
            uuid4(), worker_user.id, HireStatus.ACCEPTED
        )


@pytest.mark.asyncio
async def test_update_status_only_assigned_worker(
    db_session, client_user, worker_user, other_user, notifier, clock, hire_factory
) -> None:
    hire = await hire_factory(client_user, worker_user)

    with pytest.raises(AuthorizationError):
        await _service(db_session, notifier, clock).update_status(
            hire.id, other_user.id, HireStatus.ACCEPTED
        )


@pytest.mark.asyncio
@pytest.mark.parametrize("target", [HireStatus.PENDING, HireStatus.COMPLETED])
async def test_update_status_rejects_invalid_target(
    db_session, client_user, worker_user, notifier, clock, hire_factory, target
) -> None:
    hire = await hire_factory(client_user, worker_user)

    with pytest.raises(ValidationError):
        await _service(db_session, notifier, clock).update_status(hire.id, worker_user.id, target)


@pytest.mark.asyncio
async def test_update_status_conflict_when_not_pending(
    db_session, client_user, worker_user, notifier, clock, hire_factory
) -> None:
    hire = await hire_factory(client_user, worker_user, status=HireStatus.REJECTED)

    with pytest.raises(ConflictError):
        await _service(db_session, notifier, clock).update_status(
            hire.id, worker_user.id, HireStatus.ACCEPTED
        )


# --- Completion errors ---


@pytest.mark.asyncio
async def test_mark_worker_completed_twice_conflicts(
    db_session, client_user, worker_user, notifier, clock, hire_factory, session_factory
) -> None:
    hire = await hire_factory(client_user, worker_user, status=HireStatus.ACCEPTED)
    service = _service(db_session, notifier, clock)
    await service.mark_worker_completed(hire.id, worker_user.id)

    with pytest.raises(ConflictError) as exc_info:
        await service.mark_worker_completed(hire.id, worker_user.id)

    assert "already" in exc_info.value.message
    stored = await _load_hire(session_factory, hire.id)
    assert stored.completed_at is None
    assert stored.status == HireStatus.ACCEPTED


@pytest.mark.asyncio
async def test_mark_worker_completed_after_completion_keeps_timestamp(
    db_session, client_user, worker_user, notifier, clock, hire_factory, session_factory, fixed_now
) -> None:
    completed_at = fixed_now - timedelta(days=1)
    hire = await hire_factory(
        client_user, worker_user, status=HireStatus.COMPLETED, completed_at=completed_at
    )

    with pytest.raises(ConflictError):
        await _service(db_session, notifier, clock).mark_worker_completed(hire.id, worker_user.id)

    stored = await _load_hire(session_factory, hire.id)
    assert stored.completed_at.replace(tzinfo=None) == completed_at.replace(tzinfo=None)


@pytest.mark.asyncio
async def test_mark_worker_completed_requires_accepted(
    db_session, client_user, worker_user, notifier, clock, hire_factory
) -> None:
    hire = await hire_factory(client_user, worker_user)

    with pytest.raises(ConflictError):
        await _service(db_session, notifier, clock).mark_worker_completed(hire.id, worker_user.id)


@pytest.mark.asyncio
async def test_mark_worker_completed_only_assigned_worker(
    db_session, client_user, worker_user, other_user, notifier, clock, hire_factory
) -> None:
    hire = await hire_factory(client_user, worker_user, status=HireStatus.ACCEPTED)

    with pytest.raises(AuthorizationError):
        await _service(db_session, notifier, clock).mark_worker_completed(hire.id, other_user.id)


@pytest.mark.asyncio
async def test_client_cannot_confirm_before_worker(
    db_session, client_user, worker_user, notifier, clock, hire_factory
) -> None:
    hire = await hire_factory(client_user, worker_user, status=HireStatus.ACCEPTED)

    with pytest.raises(ConflictError):
        await _service(db_session, notifier, clock).confirm_client_completion(
            hire.id, client_user.id
        )


@pytest.mark.asyncio
async def test_client_confirm_twice_conflicts(
    db_session, client_user, worker_user, notifier, clock, hire_factory
) -> None:
    hire = await hire_factory(
        client_user, worker_user, status=HireStatus.ACCEPTED, worker_completed=True
    )
    service = _service(db_session, notifier, clock)
    await service.confirm_client_completion(hire.id, client_user.id)

    with pytest.raises(ConflictError) as exc_info:
        await service.confirm_client_completion(hire.id, client_user.id)

    assert exc_info.value.message == "You have already confirmed completion of this hire."


@pytest.mark.asyncio
async def test_client_confirm_only_assigned_client(
    db_session, client_user, worker_user, free_client_user, notifier, clock, hire_factory
) -> None:
    hire = await hire_factory(
        client_user, worker_user, status=HireStatus.ACCEPTED, worker_completed=True
    )

    with pytest.raises(AuthorizationError):
        await _service(db_session, notifier, clock).confirm_client_completion(
            hire.id, free_client_user.id
        )


# --- Concurrency ---


@pytest.mark.asyncio
async def test_concurrent_client_confirmations_complete_once(
    session_factory, client_user, worker_user, notifier, clock, hire_factory
) -> None:
    hire = await hire_factory(
        client_user, worker_user, status=HireStatus.ACCEPTED, worker_completed=True
    )

    async def confirm():
        async with session_factory() as session:
            return await _service(session, notifier, clock).confirm_client_completion(
                hire.id, client_user.id
            )

    results = await asyncio.gather(confirm(), confirm(), return_exceptions=True)

    successes = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 1
    stored = await _load_hire(session_factory, hire.id)
    assert stored.status == HireStatus.COMPLETED
    assert stored.completed_at is not None


@pytest.mark.asyncio
async def test_concurrent_worker_completions_set_flag_once(
    session_factory, client_user, worker_user, notifier, clock, hire_factory
) -> None:
    hire = await hire_factory(client_user, worker_user, status=HireStatus.ACCEPTED)

    async def complete():
        async with session_factory() as session:
            return await _service(session, notifier, clock).mark_worker_completed(
                hire.id, worker_user.id
            )

    results = await asyncio.gather(complete(), complete(), complete(), return_exceptions=True)

    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    assert all(isinstance(r, ConflictError) for r in results if isinstance(r, Exception))
    stored = await _load_hire(session_factory, hire.id)
    # status COMPLETED iff both flags set
    assert stored.worker_completed is True
    assert stored.client_completed is False
    assert stored.status == HireStatus.ACCEPTED
    assert stored.completed_at is None


# --- Listings ---


@pytest.mark.asyncio
async def test_get_hires_for_user_includes_both_sides(
    db_session, client_user, worker_user, other_user, notifier, clock, hire_factory, fixed_now
) -> None:
    older = await hire_factory(client_user, worker_user, created_at=fixed_now - timedelta(days=2))
    newer = await hire_factory(client_user, worker_user, created_at=fixed_now - timedelta(days=1))
    await hire_factory(client_user, other_user)

    service = _service(db_session, notifier, clock)
    worker_hires, worker_total = await service.get_hires_for_user(worker_user.id)
    client_hires, client_total = await service.get_hires_for_user(client_user.id, skip=0, limit=2)

    assert worker_total == 2
    assert [h.id for h in worker_hires] == [newer.id, older.id]
    assert client_total == 3
    assert len(client_hires) == 2


@pytest.mark.asyncio
async def test_get_completed_hires_for_client(
    db_session, client_user, worker_user, notifier, clock, hire_factory, fixed_now
) -> None:
    first = await hire_factory(
        client_user, worker_user, status=HireStatus.COMPLETED,
        completed_at=fixed_now - timedelta(days=3),
    )
    second = await hire_factory(
        client_user, worker_user, status=HireStatus.COMPLETED,
        completed_at=fixed_now - timedelta(days=1),
    )
    await hire_factory(client_user, worker_user, status=HireStatus.ACCEPTED)

    hires, total = await _service(db_session, notifier, clock).get_completed_hires_for_client(
        client_user.id
    )

    assert total == 2
    assert [h.id for h in hires] == [second.id, first.id]
