"""
main.py

Application entrypoint for the Hireflow API.
- Initializes structured logging
- Sets up FastAPI application, lifespan and middlewares
- Starts the daily review reminder scheduler
- Registers all API routers
- Integrates rate limiting via SlowAPI
- Adds common security headers
- Configures CORS
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.core.config import settings
from app.core.exceptions import ServerError, ValidationError
from app.core.limiter import limiter
from app.core.logging import init_logging
from app.database.init_db import init_db
from app.hire.routes import router as hire_router
from app.jobs.review_reminder_job import start_review_reminder_scheduler
from app.review.routes import router as review_router
from app.utils.middleware import LoggingMiddleware

logger = logging.getLogger(__name__)


# -----------------------------
# Lifespan (startup / shutdown)
# -----------------------------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_logging()
    logger.info(f"Starting {settings.APP_NAME}")

    if settings.AUTO_CREATE_TABLES:
        await init_db()

    reminder_task = asyncio.create_task(start_review_reminder_scheduler())
    try:
        yield
    finally:
        reminder_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reminder_task
        logger.info(f"{settings.APP_NAME} shut down")


# -----------------------------
# FastAPI App Initialization
# -----------------------------
app = FastAPI(title=f"{settings.APP_NAME} API", lifespan=lifespan)

# -----------------------------
# Rate Limiting
# -----------------------------
app.state.limiter = limiter


async def rate_limit_exceeded_handler(request: Request, exc: Exception) -> Response:
    return _rate_limit_exceeded_handler(request, exc)  # type: ignore[arg-type]


app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# -----------------------------
# Error Handlers
# -----------------------------
@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies and parameters as 400 validation errors."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request.")
    if field:
        message = f"{field}: {message}"
    logger.info(f"[VALIDATION] {request.method} {request.url.path}: {message}")
    error = ValidationError(message)
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"[DB] Unhandled database error on {request.url.path}: {exc}", exc_info=True)
    error = ServerError()
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


# -----------------------------
# Security Headers Middleware
# -----------------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add common security headers to responses.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        # Review links carry a token in the path
        response.headers["Referrer-Policy"] = "no-referrer"
        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(LoggingMiddleware)

# -----------------------------
# CORSMiddleware Configuration
# -----------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# API Router Registration
# -----------------------------
app.include_router(hire_router)
app.include_router(review_router)


# -----------------------------
# Root Endpoint
# -----------------------------
@app.get("/", response_class=HTMLResponse)
async def home() -> Any:
    return f"""
    <html>
        <head>
            <title>Welcome to {settings.APP_NAME}</title>
        </head>
        <body style="font-family: Arial, sans-serif; text-align: center; padding-top: 50px;">
            <h1>Welcome to <span style="color: #2c3e50;">{settings.APP_NAME}</span></h1>
            <p>Hires, completion confirmations and customer reviews.</p>
        </body>
    </html>
    """
