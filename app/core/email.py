"""
app/core/email.py

Notification Delivery

Defines the Notifier contract used by the core and its default
implementation that sends transactional emails through SendGrid:
- Review reminder (5 days after completion, carries the review link)
- Hire created notification to the hired worker

Notifier methods raise NotificationError on failure; callers decide
whether a failure is fatal.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape
from pydantic import BaseModel, EmailStr, Field
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import From, Mail, To

from app.core.config import settings

# Logger configuration
logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Raised when a notification could not be delivered."""


# ---------------------------------------------------
# Payloads & Contract
# ---------------------------------------------------
class ReviewReminderPayload(BaseModel):
    """Everything the notifier needs to deliver one review reminder."""

    to_email: EmailStr = Field(..., description="Client's email address")
    client_name: str = Field(..., description="Client's display name")
    worker_name: str = Field(..., description="Worker's display name")
    service: str = Field(..., description="Hired service")
    review_link: str = Field(..., description="Link to the review form, including the token")


class Notifier(Protocol):
    async def send_review_reminder(self, payload: ReviewReminderPayload) -> None: ...

    async def send_hire_created(
        self, *, to_email: str, worker_name: str, client_name: str, service: str
    ) -> None: ...


# ---------------------------------------------------
# Default Notifier (SendGrid + Jinja2)
# ---------------------------------------------------
class EmailNotifier:
    """
    Delivers notifications as HTML emails.

    Templates live in MAIL_TEMPLATES_DIR. With EMAILS_ENABLED off the rendered
    email is logged and dropped, which keeps local runs free of provider calls.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        self.template_dir = template_dir or settings.mail_templates_path
        self.sender_name = settings.MAIL_FROM_NAME or settings.APP_NAME
        self.env = Environment(
            loader=FileSystemLoader(self.template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def _render(self, template_name: str, **context: Any) -> str:
        base_context = {
            "year": datetime.now(timezone.utc).year,
            "company_name": self.sender_name,
            "support_email": str(settings.SUPPORT_EMAIL),
        }
        try:
            return self.env.get_template(template_name).render(**base_context, **context)
        except TemplateError as e:
            logger.error(f"[EMAIL] Could not render '{template_name}' from {self.template_dir}: {e}")
            raise NotificationError(f"Template {template_name} could not be rendered") from e

    def _post(self, message: Mail) -> Any:
        return SendGridAPIClient(settings.SENDGRID_API_KEY).send(message)

    async def _deliver(self, to_email: str, subject: str, html: str) -> None:
        if not settings.EMAILS_ENABLED:
            logger.info(f"[EMAIL] Delivery disabled, dropping '{subject}' for {to_email}")
            return
        if not settings.SENDGRID_API_KEY:
            raise NotificationError("SENDGRID_API_KEY is not configured")

        message = Mail(
            from_email=From(str(settings.MAIL_FROM), self.sender_name),
            to_emails=To(to_email),
            subject=subject,
            html_content=html,
        )
        try:
            # SendGrid's client blocks on I/O
            response = await asyncio.to_thread(self._post, message)
        except Exception as e:
            logger.error(f"[EMAIL] SendGrid call failed for {to_email}: {e}")
            raise NotificationError(f"Delivery to {to_email} failed") from e

        if response.status_code >= 300:
            logger.error(f"[EMAIL] SendGrid rejected '{subject}' ({response.status_code}): {response.body}")
            raise NotificationError(f"Provider rejected delivery to {to_email}")
        logger.info(f"[EMAIL] Sent '{subject}' to {to_email} ({response.status_code})")

    async def send_review_reminder(self, payload: ReviewReminderPayload) -> None:
        html = self._render(
            "review_reminder.html",
            client_name=payload.client_name,
            worker_name=payload.worker_name,
            service=payload.service,
            review_link=payload.review_link,
            review_window_days=settings.REVIEW_WINDOW_DAYS,
        )
        await self._deliver(
            str(payload.to_email), f"How did it go with {payload.worker_name}?", html
        )

    async def send_hire_created(
        self, *, to_email: str, worker_name: str, client_name: str, service: str
    ) -> None:
        html = self._render(
            "hire_created.html",
            worker_name=worker_name,
            client_name=client_name,
            service=service,
            hires_link=f"{settings.FRONTEND_URL.rstrip('/')}/hires",
        )
        await self._deliver(to_email, f"New hire request from {client_name}", html)


_default_notifier: EmailNotifier | None = None


def get_notifier() -> Notifier:
    """Return the process-wide notifier, created on first use."""
    global _default_notifier
    if _default_notifier is None:
        _default_notifier = EmailNotifier()
    return _default_notifier
