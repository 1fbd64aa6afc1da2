"""
app/hire/routes.py

Hire Routes
Defines hire-related API endpoints for clients and workers:
- Create a hire (Authenticated Client)
- List hires for current user (Authenticated)
- List completed hires (Authenticated Client)
- Accept or reject a hire (Assigned Worker)
- Mark a hire as completed (Assigned Worker)
- Confirm completion (Assigned Client)

All endpoints require authentication. Ownership of a hire is checked by
the service layer.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import PaginationParams, get_current_user, get_current_user_with_role
from app.core.limiter import limiter
from app.core.schemas import PaginatedResponse
from app.database.enums import UserRole
from app.database.models import User
from app.database.session import get_db
from app.hire import schemas
from app.hire.services import HireService

router = APIRouter(prefix="/hires", tags=["Hires"])

DBDep = Annotated[AsyncSession, Depends(get_db)]

AuthenticatedUserDep = Annotated[User, Depends(get_current_user)]
AuthenticatedClientDep = Annotated[User, Depends(get_current_user_with_role(UserRole.CLIENT))]


# ---------------------------------------------------
# Client Endpoints (Create, Completed List, Confirm)
# ---------------------------------------------------
@router.post(
    "",
    response_model=schemas.HireRead,
    status_code=status.HTTP_201_CREATED,
    summary="Hire Worker",
    description="Client hires a worker for a service. Requires Client role and an entitled subscription.",
)
@limiter.limit("10/minute")
async def create_hire(
    request: Request,
    payload: schemas.HireCreate,
    db: DBDep,
    current_user: AuthenticatedClientDep,
) -> schemas.HireRead:
    """Authenticated client creates a new hire."""
    return await HireService(db).create_hire(client_id=current_user.id, payload=payload)


@router.get(
    "/completed",
    response_model=PaginatedResponse[schemas.HireRead],
    status_code=status.HTTP_200_OK,
    summary="List Completed Hires",
    description="List completed hires for the authenticated client, most recent first.",
)
@limiter.limit("20/minute")
async def get_completed_hires(
    request: Request,
    db: DBDep,
    current_user: AuthenticatedClientDep,
    pagination: PaginationParams = Depends(),
) -> PaginatedResponse[schemas.HireRead]:
    hires, total_count = await HireService(db).get_completed_hires_for_client(
        current_user.id, skip=pagination.skip, limit=pagination.limit
    )
    return PaginatedResponse.build(hires, total_count, pagination.skip, pagination.limit)


@router.post(
    "/{hire_id}/confirm-completion",
    response_model=schemas.HireRead,
    status_code=status.HTTP_200_OK,
    summary="Confirm Completion",
    description="Client confirms the worker completed the hire. Completes the hire.",
)
@limiter.limit("10/minute")
async def confirm_completion(
    request: Request,
    hire_id: UUID,
    db: DBDep,
    current_user: AuthenticatedUserDep,
) -> schemas.HireRead:
    """Authenticated client confirms completion of their hire."""
    return await HireService(db).confirm_client_completion(
        hire_id=hire_id, actor_id=current_user.id
    )


# ---------------------------------------------------
# Worker Endpoints (Accept/Reject, Complete)
# ---------------------------------------------------
@router.put(
    "/{hire_id}/status",
    response_model=schemas.HireRead,
    status_code=status.HTTP_200_OK,
    summary="Accept or Reject Hire",
    description="Assigned worker accepts or rejects a pending hire.",
)
@limiter.limit("10/minute")
async def update_hire_status(
    request: Request,
    hire_id: UUID,
    payload: schemas.HireStatusUpdate,
    db: DBDep,
    current_user: AuthenticatedUserDep,
) -> schemas.HireRead:
    """Authenticated worker decides on a pending hire."""
    return await HireService(db).update_status(
        hire_id=hire_id, actor_id=current_user.id, new_status=payload.status
    )


@router.put(
    "/{hire_id}/status/completed",
    response_model=schemas.HireRead,
    status_code=status.HTTP_200_OK,
    summary="Mark Hire Completed",
    description="Assigned worker marks the work as done. The client must confirm.",
)
@limiter.limit("10/minute")
async def mark_hire_completed(
    request: Request,
    hire_id: UUID,
    db: DBDep,
    current_user: AuthenticatedUserDep,
) -> schemas.HireRead:
    """Authenticated worker marks their side of the hire as completed."""
    return await HireService(db).mark_worker_completed(hire_id=hire_id, actor_id=current_user.id)


# ---------------------------------------------------
# Shared Endpoints (Client or Worker)
# ---------------------------------------------------
@router.get(
    "",
    response_model=PaginatedResponse[schemas.HireRead],
    status_code=status.HTTP_200_OK,
    summary="List My Hires",
    description="List all hires for the authenticated user (client or worker), newest first.",
)
@limiter.limit("20/minute")
async def get_hires_for_user(
    request: Request,
    db: DBDep,
    current_user: AuthenticatedUserDep,
    pagination: PaginationParams = Depends(),
) -> PaginatedResponse[schemas.HireRead]:
    """List all hires where the authenticated user is involved with pagination."""
    hires, total_count = await HireService(db).get_hires_for_user(
        current_user.id, skip=pagination.skip, limit=pagination.limit
    )
    return PaginatedResponse.build(hires, total_count, pagination.skip, pagination.limit)
