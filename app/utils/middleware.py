"""
utils/middleware.py

Defines custom middleware to log all HTTP requests and responses.
Captures request method, path, response status and duration.
Review tokens carried in the URL path are masked before logging.
"""

import logging
import re
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = logging.getLogger("app.requests")

_TOKEN_PATH = re.compile(r"(/reviews/validate/)[^/]+")


def _safe_path(path: str) -> str:
    return _TOKEN_PATH.sub(r"\1***", path)


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = _safe_path(request.url.path)
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        # Log the response depending on status
        log_fn = logger.warning if response.status_code >= 400 else logger.info
        log_fn(
            f"Response: {request.method} {path} - "
            f"Status {response.status_code} - {elapsed_ms:.1f}ms"
        )
        return response
