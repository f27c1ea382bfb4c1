"""Logging configuration.

The terminal belongs to the Textual UI, so records only go to files.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

import structlog


def get_log_level() -> str:
    """Get log level based on environment."""
    env = (os.getenv("ENV") or os.getenv("ENVIRONMENT") or "development").lower()

    level_map = {
        "production": "INFO",
        "staging": "INFO",
        "development": "DEBUG",
        "test": "WARNING",
    }

    return os.getenv("LOG_LEVEL", level_map.get(env, "INFO")).upper()


def setup_stdlib_logging(log_path: str | Path) -> None:
    """Send root logging to a rotating file."""
    log_level = get_log_level()

    log_file = Path(log_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    file_handler = logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(file_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def setup_structlog() -> None:
    """Configure structlog on top of the stdlib handlers."""
    env = os.getenv("ENVIRONMENT", "development").lower()

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.contextvars.merge_contextvars,
    ]

    if env in ["production", "staging"]:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"]))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(log_path: str | Path) -> None:
    """Configure all logging for the application."""
    setup_stdlib_logging(log_path)
    setup_structlog()
