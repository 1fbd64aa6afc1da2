"""
core/logging.py

Centralized logging configuration for the application.
- Colored console logs via `colorlog`
- Optional rotating file logs under LOG_DIR (app.log, error.log)
- reminders.log keeps the reminder job's per-run audit trail
- Root level from LOG_LEVEL; noisy libraries held at WARNING

Should be initialized once early in app startup (lifespan in main.py)
"""

from logging.config import dictConfig
from pathlib import Path
from typing import Any

from app.core.config import BASE_DIR, settings

CONSOLE_FORMAT = "%(log_color)s[%(asctime)s] %(levelname)-8s [%(name)s] %(message)s"
FILE_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] in %(module)s:%(lineno)d: %(message)s"

# Feature loggers, so a single area can be turned up without touching root
FEATURE_LOGGERS = ("app.hire", "app.review", "app.jobs")


def _rotating(filename: Path, level: str = "NOTSET") -> dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "filename": str(filename),
        "maxBytes": 5 * 1024 * 1024,
        "backupCount": 5,
        "formatter": "plain",
        "level": level,
        "encoding": "utf-8",
    }


def build_logging_config(level: str, log_dir: Path | None) -> dict[str, Any]:
    """
    Build the dictConfig mapping.

    With `log_dir` set, the root logger also writes to app.log and error.log,
    and the reminder job gets its own reminders.log.
    """
    level = level.upper()
    handlers: dict[str, Any] = {
        "console": {"class": "logging.StreamHandler", "formatter": "color"},
    }
    root_handlers = ["console"]
    loggers: dict[str, Any] = {
        "uvicorn.access": {"level": "WARNING"},
        "sqlalchemy.engine": {"level": "WARNING"},
        "slowapi": {"level": "WARNING"},
    }
    for name in FEATURE_LOGGERS:
        loggers[name] = {"level": level}

    if log_dir is not None:
        handlers["file"] = _rotating(log_dir / "app.log")
        handlers["error_file"] = _rotating(log_dir / "error.log", level="ERROR")
        handlers["reminder_file"] = _rotating(log_dir / "reminders.log")
        root_handlers += ["file", "error_file"]
        loggers["app.jobs"]["handlers"] = ["reminder_file"]

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {"format": FILE_FORMAT},
            "color": {
                "()": "colorlog.ColoredFormatter",
                "format": CONSOLE_FORMAT,
                "log_colors": {
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "bold_red",
                },
            },
        },
        "handlers": handlers,
        "loggers": loggers,
        "root": {"level": level, "handlers": root_handlers},
    }


def init_logging() -> None:
    """Configure logging from settings, creating LOG_DIR when file logs are on."""
    log_dir: Path | None = None
    if settings.LOG_TO_FILE:
        log_dir = Path(settings.LOG_DIR)
        if not log_dir.is_absolute():
            log_dir = BASE_DIR / log_dir
        log_dir.mkdir(parents=True, exist_ok=True)
    dictConfig(build_logging_config(settings.LOG_LEVEL, log_dir))
