"""
Structured logging configuration for the sync client.
Console output in development, JSON elsewhere; nonces and tokens never reach the log.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.typing import EventDict, Processor

from lms_sync.core.config import ApiSettings


SENSITIVE_FIELDS = {
    "nonce",
    "password",
    "token",
    "secret",
    "authorization",
    "cookie",
    "session",
}

MAX_VALUE_LENGTH = 1000


def redact_sensitive(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Redact credentials and truncate very long values."""

    def sanitize_dict(d: dict[str, Any]) -> dict[str, Any]:
        sanitized = {}
        for key, value in d.items():
            lower_key = str(key).lower()
            if any(sensitive in lower_key for sensitive in SENSITIVE_FIELDS):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = sanitize_dict(value)
            elif isinstance(value, str) and len(value) > MAX_VALUE_LENGTH:
                sanitized[key] = value[:MAX_VALUE_LENGTH] + "...[TRUNCATED]"
            else:
                sanitized[key] = value
        return sanitized

    return sanitize_dict(event_dict)


def setup_logging(settings: ApiSettings) -> None:
    """Configure structlog and the standard library for the given settings."""
    processors: list[Processor] = [
        redact_sensitive,
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    if settings.log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=settings.is_development))
    else:
        processors.extend(
            [
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ]
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        # Cached loggers keep their output stream; tests swap streams between runs
        cache_logger_on_first_use=settings.environment != "testing",
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.log_level),
    )

    # Silence noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
