"""
app/core/dependencies.py

Request dependencies shared by the hire and review routers.

Authentication:
- Access tokens are read from the Bearer header, then the `access_token` cookie
- The token subject must be an existing, active user

Authorization:
- `get_current_user_with_role` gates a route on one role

Pagination:
- `PaginationParams` for authenticated listings (limit <= 100)
- `ReviewPaginationParams` for public review listings (limit <= 50)
"""

import logging
from collections.abc import Callable, Coroutine
from typing import Annotated, Any
from uuid import UUID

from fastapi import Cookie, Depends, Query
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.tokens import decode_access_token
from app.database.enums import UserRole
from app.database.models import User
from app.database.session import get_db

logger = logging.getLogger(__name__)

# Header is optional so requests carrying only the cookie still reach get_current_user
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login/oauth", auto_error=False)


# ---------------------------------------------------
# Pagination
# ---------------------------------------------------
class PaginationParams:
    """skip/limit query parameters for authenticated listings."""

    def __init__(
        self,
        skip: int = Query(0, ge=0, description="Number of records to skip"),
        limit: int = Query(20, ge=1, le=100, description="Maximum number of records to return"),
    ):
        self.skip = skip
        self.limit = limit


class ReviewPaginationParams(PaginationParams):
    """skip/limit for public review listings, newest first."""

    def __init__(
        self,
        skip: int = Query(0, ge=0, description="Number of reviews to skip"),
        limit: int = Query(10, ge=1, le=50, description="Maximum number of reviews to return"),
    ):
        super().__init__(skip=skip, limit=limit)


# ---------------------------------------------------
# Authentication
# ---------------------------------------------------
async def _load_active_user(db: AsyncSession, user_id: UUID) -> User | None:
    result = await db.execute(select(User).filter(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        logger.warning(f"[AUTH] Token subject has no user: user_id={user_id}")
        return None
    if not user.is_active:
        logger.warning(f"[AUTH] Inactive user presented a token: user_id={user_id}")
        return None
    return user


async def get_current_user(
    token_header: Annotated[str | None, Depends(oauth2_scheme)] = None,
    token_cookie: Annotated[str | None, Cookie(alias="access_token")] = None,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the caller from an access token.

    Raises:
        AuthenticationError: 401 when the token is missing, invalid or expired,
            or when its subject is not an active user.
    """
    token = token_header or token_cookie
    if token is None:
        raise AuthenticationError()

    try:
        claims = decode_access_token(token)
    except ValueError as e:
        logger.warning(f"[AUTH] Rejected access token: {e}")
        raise AuthenticationError(challenge=False)

    user = await _load_active_user(db, claims.sub)
    if user is None:
        raise AuthenticationError(challenge=False)

    source = "header" if token_header else "cookie"
    logger.debug(f"[AUTH] Authenticated user {user.id} via {source}")
    return user


# ---------------------------------------------------
# Authorization
# ---------------------------------------------------
def get_current_user_with_role(required_role: UserRole) -> Callable[..., Coroutine[Any, Any, User]]:
    """Build a dependency that only lets `required_role` through."""

    async def role_dependency(user: User = Depends(get_current_user)) -> User:
        if user.role != required_role:
            logger.warning(
                f"[RBAC] Access denied: user {user.id} role={user.role.value}, required={required_role.value}"
            )
            raise AuthorizationError(f"Access denied for role: {user.role.value}")
        return user

    return role_dependency
