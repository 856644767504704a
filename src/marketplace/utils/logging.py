"""Logging for the marketplace service.

Modules log with ``structlog.get_logger(__name__)`` and event-style names
(``payment.confirmed``, ``order.placed``). ``configure_logging`` is called
once by the API and the management CLI.

Payment logs sit next to M-Pesa credentials, so every event passes through
``redact_secrets`` before it is rendered.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

_LEVELS_BY_ENV = {
    "production": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

# Keys whose values must never reach a log line
SECRET_KEYS = frozenset(
    {
        "authorization",
        "access_token",
        "consumer_key",
        "consumer_secret",
        "passkey",
        "password",
    }
)

REDACTED = "***"


def current_environment() -> str:
    return (os.getenv("PROTEAN_ENV") or "development").lower()


def get_log_level() -> str:
    """Level for the environment, overridable with LOG_LEVEL."""
    return os.getenv("LOG_LEVEL", _LEVELS_BY_ENV.get(current_environment(), "INFO")).upper()


def redact_secrets(logger, method_name, event_dict):
    """structlog processor masking credential values, including in nested dicts."""
    return _redact(event_dict)


def _redact(values: dict) -> dict:
    cleaned = {}
    for key, value in values.items():
        if str(key).lower() in SECRET_KEYS:
            cleaned[key] = REDACTED
        elif isinstance(value, dict):
            cleaned[key] = _redact(value)
        else:
            cleaned[key] = value
    return cleaned


def _handlers(log_level: str) -> list[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(log_level)
    handlers: list[logging.Handler] = [console]

    # Containers log to stdout only; LOG_DIR adds a rotating file for VMs
    log_dir = os.getenv("LOG_DIR")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=Path(log_dir) / "marketplace.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        handlers.append(file_handler)
    return handlers


def configure_logging() -> None:
    log_level = get_log_level()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = _handlers(log_level)

    logging.getLogger("protean").setLevel(logging.WARNING)
    # httpx logs full request URLs at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        redact_secrets,
    ]
    if current_environment() == "production":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request_context(request_id: str, path: str, user_id: str | None = None) -> None:
    """Replace the log context with the current request's identifiers."""
    structlog.contextvars.clear_contextvars()
    context = {"request_id": request_id, "path": path}
    if user_id:
        context["user_id"] = user_id
    structlog.contextvars.bind_contextvars(**context)
