"""
app/core/config.py

Application Configuration Loader

Loads and manages application settings from environment variables
using Pydantic's BaseSettings with `.env` support.
Provides strict type validation and environment-specific handling.
"""

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import EmailStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------
# Logger Configuration
# ---------------------------------------------------
logger = logging.getLogger(__name__)

# ---------------------------------------------------
# Base Directory Calculation
# ---------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent
DEFAULT_DOTENV_PATH = BASE_DIR / ".env"


# ---------------------------------------------------
# Settings Definition
# ---------------------------------------------------
class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables.
    """

    # --- Pydantic Settings Configuration ---
    model_config = SettingsConfigDict(
        env_file=str(DEFAULT_DOTENV_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- General Application Settings ---
    APP_NAME: str = "Hireflow"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True
    LOG_DIR: str = "logs"
    FRONTEND_URL: str

    # --- Database Settings ---
    DATABASE_URL: str
    TEST_DATABASE_URL: str = ""
    AUTO_CREATE_TABLES: bool = False
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # --- JWT Authentication Settings ---
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # --- Review Token Settings ---
    REVIEW_TOKEN_SECRET: str = ""
    REVIEW_TOKEN_EXPIRE_DAYS: int = 7
    REVIEW_WINDOW_DAYS: int = 10

    # --- Hire Entitlement ---
    HIRE_ENTITLED_TIERS: str = "FEATURED"

    # --- Review Reminder Job ---
    REVIEW_REMINDER_ENABLED: bool = True
    REVIEW_REMINDER_HOUR_UTC: int = 0
    REVIEW_REMINDER_DELAY_DAYS: int = 5
    REVIEW_REMINDER_RETRY_MISSED: bool = True
    REVIEW_REMINDER_LOCK_TTL_SECONDS: int = 900
    NOTIFIER_TIMEOUT_SECONDS: float = 10.0

    # --- Redis Settings ---
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # --- Email Service Settings---
    SENDGRID_API_KEY: str = ""
    MAIL_FROM: EmailStr
    MAIL_FROM_NAME: str = ""
    EMAILS_ENABLED: bool = False
    MAIL_TEMPLATES_DIR: str = "app/templates/email"
    SUPPORT_EMAIL: EmailStr

    # --- Rate Limiting ---
    RATE_LIMIT_ENABLED: bool = True

    # --- CORS Settings ---
    CORS_ALLOWED_ORIGINS: str = ""

    # --- Calculated Properties ---
    @property
    def cors_origins(self) -> list[str]:
        """Parses the CORS_ALLOWED_ORIGINS string into a list."""
        if not self.CORS_ALLOWED_ORIGINS:
            return []
        return [origin.strip() for origin in self.CORS_ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def hire_entitled_tiers(self) -> set[str]:
        """Subscription tiers allowed to create hires."""
        return {tier.strip().upper() for tier in self.HIRE_ENTITLED_TIERS.split(",") if tier.strip()}

    @property
    def review_token_secret(self) -> str:
        """Signing secret for review tokens, falling back to the JWT secret."""
        return self.REVIEW_TOKEN_SECRET or self.SECRET_KEY

    @property
    def db_url(self) -> str:
        """
        Returns the appropriate database URL as a STRING based on the testing environment.
        """
        is_testing = os.getenv("PYTEST_CURRENT_TEST") is not None
        url_dsn = self.TEST_DATABASE_URL if is_testing and self.TEST_DATABASE_URL else self.DATABASE_URL
        url_str = str(url_dsn)
        if self.DEBUG:
            logger.debug(f"[CONFIG] Using DATABASE URL: {url_str}")
        return url_str

    @property
    def mail_templates_path(self) -> Path:
        """Returns the absolute path to the mail templates directory."""
        return BASE_DIR / self.MAIL_TEMPLATES_DIR


# ---------------------------------------------------
# Instantiate Settings Globally
# ---------------------------------------------------

if TYPE_CHECKING:
    # Stub settings for type hinting and editor assistance
    settings = Settings(
        FRONTEND_URL="",
        DATABASE_URL="",
        SECRET_KEY="",
        MAIL_FROM="",
        SUPPORT_EMAIL="",
    )
else:
    settings = Settings()

# ---------------------------------------------------
# Post-Instantiation Validation
# ---------------------------------------------------
templates_path = settings.mail_templates_path
if not templates_path.is_dir():
    logger.warning(f"Email templates directory not found at resolved path: {templates_path}")
