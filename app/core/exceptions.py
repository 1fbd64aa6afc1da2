"""
core/exceptions.py

Description:
Defines a standard error response format for the API and the
domain error taxonomy raised by the service layer.

Every error renders as {"error": <message>, "code": <machine code>} so
clients can tell an expired link from an already-used one.
"""

from typing import Any

from fastapi import HTTPException, status


class APIError(HTTPException):
    """Custom exception with standardized error response."""

    code: str = "error"

    def __init__(
        self,
        status_code: int,
        message: str,
        headers: dict[str, Any] | None = None,
        code: str | None = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(
            status_code=status_code,
            detail={"error": message, "code": self.code},
            headers=headers,
        )


class ValidationError(APIError):
    """Malformed or missing input."""

    code = "validation_error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, code=code)


class AuthenticationError(APIError):
    """Missing, invalid or expired access token."""

    code = "not_authenticated"

    def __init__(self, message: str = "Could not validate credentials", challenge: bool = True):
        headers = {"WWW-Authenticate": "Bearer"} if challenge else None
        super().__init__(status.HTTP_401_UNAUTHORIZED, message, headers=headers)


class AuthorizationError(APIError):
    """Actor is not entitled to perform the operation."""

    code = "forbidden"

    def __init__(self, message: str = "Not authorized to perform this action."):
        super().__init__(status.HTTP_403_FORBIDDEN, message)


class NotFoundError(APIError):
    """Referenced entity does not exist."""

    code = "not_found"

    def __init__(self, message: str):
        super().__init__(status.HTTP_404_NOT_FOUND, message)


class ConflictError(APIError):
    """State-machine precondition violated."""

    code = "conflict"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(status.HTTP_409_CONFLICT, message, code=code)


class InvalidTokenError(APIError):
    """Review token signature, structure or binding is invalid."""

    code = "invalid_token"

    def __init__(self, message: str = "Invalid review link."):
        super().__init__(status.HTTP_400_BAD_REQUEST, message)


class ExpiredTokenError(APIError):
    """Review token is past its expiry."""

    code = "token_expired"

    def __init__(self, message: str = "This review link has expired."):
        super().__init__(status.HTTP_400_BAD_REQUEST, message)


class ExpiredWindowError(APIError):
    """Review window after completion has closed."""

    code = "review_window_closed"

    def __init__(self, message: str = "The review period for this hire has ended."):
        super().__init__(status.HTTP_400_BAD_REQUEST, message)


class ServerError(APIError):
    """Unexpected failure, no partial state exposed."""

    code = "server_error"

    def __init__(self, message: str = "An unexpected error occurred."):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message)
