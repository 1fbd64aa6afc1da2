"""
review/tokens.py

Review token service.

Issues and validates the signed, expiring credential that lets a client
leave one review for one hire without logging in:
- JWT (python-jose) carrying hire_id, client_id and type="review"
- 7-day expiry checked against an injectable clock
- Stateless: single use is enforced by the hire's reviewed_at marker
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from app.core.clock import Clock, utc_now
from app.core.config import settings
from app.core.exceptions import ExpiredTokenError, InvalidTokenError

logger = logging.getLogger(__name__)

REVIEW_TOKEN_TYPE = "review"


class ReviewTokenClaims(BaseModel):
    """Verified contents of a review token."""

    hire_id: UUID = Field(..., description="Hire the token authorizes a review for")
    client_id: UUID = Field(..., description="Client the token was issued to")
    issued_at: datetime = Field(..., description="Issue time (UTC)")
    expires_at: datetime = Field(..., description="Expiry time (UTC)")


class ReviewTokenService:
    """Signs and verifies review tokens."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl_days: int = 7,
        clock: Clock = utc_now,
    ) -> None:
        if not secret:
            raise ValueError("Review token secret must not be empty.")
        self.secret = secret
        self.algorithm = algorithm
        self.ttl = timedelta(days=ttl_days)
        self.clock = clock

    # ------------------------------------------------------
    # --- Issue ---
    # ------------------------------------------------------
    def issue(self, hire_id: UUID, client_id: UUID, now: datetime | None = None) -> str:
        """
        Create a signed review token for a hire/client pair.

        Args:
            hire_id (UUID): Hire being reviewed.
            client_id (UUID): Client allowed to review it.
            now (datetime | None): Issue time, defaults to the service clock.

        Returns:
            str: Encoded JWT.
        """
        issued_at = now or self.clock()
        expires_at = issued_at + self.ttl
        payload: dict[str, Any] = {
            "hire_id": str(hire_id),
            "client_id": str(client_id),
            "type": REVIEW_TOKEN_TYPE,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        logger.debug(f"[REVIEW TOKEN] Issuing token for hire={hire_id} exp={expires_at}")
        return str(jwt.encode(payload, self.secret, algorithm=self.algorithm))

    # ------------------------------------------------------
    # --- Decode ---
    # ------------------------------------------------------
    def decode(self, token: str, now: datetime | None = None) -> ReviewTokenClaims:
        """
        Verify signature, structure and expiry of a review token.

        Raises:
            InvalidTokenError: Bad signature, malformed token, wrong type or missing claims.
            ExpiredTokenError: The token is past its expiry.
        """
        try:
            # Expiry is compared against our own clock below
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as e:
            logger.warning(f"[REVIEW TOKEN] Rejected token: {e}")
            raise InvalidTokenError()

        if payload.get("type") != REVIEW_TOKEN_TYPE:
            logger.warning(f"[REVIEW TOKEN] Wrong token type: {payload.get('type')!r}")
            raise InvalidTokenError()

        exp = payload.get("exp")
        iat = payload.get("iat")
        if not isinstance(exp, (int, float)) or not isinstance(iat, (int, float)):
            logger.warning("[REVIEW TOKEN] Token missing iat/exp claims.")
            raise InvalidTokenError()

        try:
            claims = ReviewTokenClaims(
                hire_id=payload.get("hire_id"),
                client_id=payload.get("client_id"),
                issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
                expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
            )
        except PydanticValidationError as e:
            logger.warning(f"[REVIEW TOKEN] Token claims invalid: {e.error_count()} error(s)")
            raise InvalidTokenError()

        current = now or self.clock()
        if current > claims.expires_at:
            logger.info(f"[REVIEW TOKEN] Expired token for hire={claims.hire_id}")
            raise ExpiredTokenError()

        return claims


def get_review_token_service() -> ReviewTokenService:
    """Build the token service from settings."""
    return ReviewTokenService(
        secret=settings.review_token_secret,
        algorithm=settings.ALGORITHM,
        ttl_days=settings.REVIEW_TOKEN_EXPIRE_DAYS,
    )
