"""
Structured logging configuration using structlog.

Every module logs through get_logger(__name__). Values pulled out of failing
tests (paths, hosts, addresses) pass through the privacy redactor before they
are rendered.
"""

import logging
import re
import sys
from typing import Any

import structlog

from testmedic.shared.infrastructure.config import Settings, get_settings

_REDACTIONS = [
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[EMAIL_REDACTED]"),
    (re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"), "[IP_REDACTED]"),
    (re.compile(r"/Users/[^/\s]+"), "[HOME_REDACTED]"),
    (re.compile(r"/home/[^/\s]+"), "[HOME_REDACTED]"),
    (
        re.compile(r"(api[_-]?key|token|password|secret)['\"]?\s*[:=]\s*['\"]?([^'\"\s]+)", re.IGNORECASE),
        r"\1=[REDACTED]",
    ),
    (re.compile(r"Bearer\s+\S+", re.IGNORECASE), "Bearer [TOKEN_REDACTED]"),
]


def redact_string(text: str) -> str:
    """Redact sensitive patterns from a string."""
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def _redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return {k: _redact_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact_value(v) for v in value]
    return value


def privacy_redactor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Redact sensitive information from log events.

    Redacts email addresses, IP addresses, home directory paths, credential
    assignments and bearer tokens in every string value, recursively.
    """
    return {k: _redact_value(v) for k, v in event_dict.items()}


def configure_logging(settings: Settings | None = None, stream: Any = sys.stderr, level: str | None = None) -> None:
    """
    Configure structlog for the application.

    Pretty console output in development, JSON lines otherwise. The redactor
    joins the chain unless settings.log_redaction_enabled is False. Without
    explicit settings the process-wide ones from get_settings() are used.
    """
    settings = settings or get_settings()
    log_level = (level or settings.log_level).upper()

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.log_redaction_enabled:
        shared_processors.append(privacy_redactor)

    if settings.is_development:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=stream.isatty() if hasattr(stream, "isatty") else False),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=getattr(logging, log_level, logging.INFO),
        force=True,
    )


def get_logger(name: str) -> Any:
    """
    Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("healing_started", test="login works")
    """
    return structlog.get_logger(name)
