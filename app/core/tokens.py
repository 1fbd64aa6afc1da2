"""
core/tokens.py

Access token utilities.

Access tokens are issued by the external authentication service; this
core only needs to decode them (and tests need to mint them):
- JWT access token with expiration and JTI
- Decoder returning the validated subject and role
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError as PydanticValidationError

from app.core.config import settings
from app.database.enums import UserRole

logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """Claims the core relies on from an access token."""

    sub: UUID
    role: UserRole


# ------------------------------------------------------
# --- Access Token ---
# ------------------------------------------------------
def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """
    Create a JWT access token with expiration and unique JTI.

    Args:
        data (dict[str, Any]): Payload data to include in the token (must contain 'sub' and 'role').
        expires_delta (timedelta | None): Optional custom expiration time. Defaults to settings.

    Returns:
        str: Encoded JWT access token.
    """
    if "sub" not in data or "role" not in data:
        logger.error("Access token creation attempt missing 'sub' or 'role' in data.")
        raise ValueError("Access token payload must include 'sub' and 'role'.")

    expire: datetime = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload: dict[str, Any] = {
        **data,
        "sub": str(data["sub"]),
        "exp": expire,
        "jti": str(uuid.uuid4()),
    }

    logger.debug(f"Issuing access token for sub={data.get('sub')} exp={expire}")
    return str(jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM))


def decode_access_token(token: str) -> TokenPayload:
    """
    Decode and validate an access token.

    Raises:
        ValueError: If the token is invalid, expired, or lacks required claims.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return TokenPayload(**payload)
    except (JWTError, PydanticValidationError) as e:
        raise ValueError(f"Invalid access token: {e}") from e
