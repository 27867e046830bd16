"""
Structured logging configuration for the GitHub push sync service.

This module configures Structlog as the application's default logging system,
providing:
  - JSON output in production for log aggregation
  - Human-readable colored output in development
  - Context propagation (request_id, delivery_id, event)
  - Integration with standard library logging
  - Automatic filtering of sensitive data (secrets, basic-auth credentials)

Usage:
    from pushsync.utils.logging import setup_logging, get_logger

    # At application startup:
    setup_logging(log_level="INFO", environment="development")

    # In any module:
    logger = get_logger(__name__)
    logger.info("change_downloaded", path="docs/readme.md", bytes=512)

    # With bound context (persists across calls):
    logger = logger.bind(repository="acme/site", branch="main")
    logger.info("sync_started", change_count=3)
"""

import logging
import re
import sys
import uuid
from typing import Any, Optional

import structlog
from structlog.types import EventDict, WrappedLogger


SERVICE_NAME = "github-push-sync"

# Patterns for sensitive data that should never be logged
_SENSITIVE_PATTERNS = [
    re.compile(r"(ghp_[a-zA-Z0-9]{36,})"),           # GitHub PAT
    re.compile(r"(ghs_[a-zA-Z0-9]{36,})"),           # GitHub App token
    re.compile(r"(github_pat_[a-zA-Z0-9_]{40,})"),   # Fine-grained PAT
    re.compile(r"(Basic\s+[a-zA-Z0-9+/]{8,}={0,2})"),  # Basic auth header
    re.compile(r"(Bearer\s+[a-zA-Z0-9\-_.]+)"),      # Bearer tokens
    re.compile(r"(https?://[^/\s:@]+:[^/\s@]+@)"),   # Credentials embedded in URLs
]

_SENSITIVE_KEYS = frozenset({
    "token", "secret", "password", "credentials",
    "authorization", "auth", "private_key",
    "webhook_secret", "github_password", "signature",
})

REDACTED = "***REDACTED***"


def _sanitize_value(value: Any) -> Any:
    """Redact sensitive values from log output."""
    if isinstance(value, str):
        for pattern in _SENSITIVE_PATTERNS:
            if pattern.search(value):
                return REDACTED
    return value


def _sanitize_event_dict(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Structlog processor that redacts sensitive data from log events.

    Checks both key names and string values for sensitive patterns.
    """
    sanitized = {}
    for key, value in event_dict.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in _SENSITIVE_KEYS):
            sanitized[key] = REDACTED
        else:
            sanitized[key] = _sanitize_value(value)
    return sanitized


def _add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add application-level context to every log event."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _drop_color_message_key(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Remove the duplicate 'color_message' key uvicorn attaches to its records."""
    event_dict.pop("color_message", None)
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    environment: str = "development",
    json_output: Optional[bool] = None,
) -> None:
    """
    Configure structured logging for the application.

    In production and staging the output is JSON, otherwise it is rendered
    for a terminal.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Application environment (development, staging, production)
        json_output: Force JSON output (auto-detected from environment if None)
    """
    if json_output is None:
        json_output = environment in ("production", "staging")

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        _add_app_context,
        _drop_color_message_key,
        _sanitize_event_dict,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True, pad_event_to=32)

    stdlib_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicate output
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(stdlib_formatter)
    console_handler.setLevel(numeric_level)
    root_logger.addHandler(console_handler)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    for uvicorn_logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_logger_name)
        uvicorn_logger.handlers = [console_handler]
        uvicorn_logger.propagate = False

    # httpx logs every request at INFO, including the URL
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    logging.captureWarnings(True)


def get_logger(name: Optional[str] = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)
        **initial_context: Key-value pairs to bind to every log message

    Returns:
        Configured BoundLogger instance
    """
    log = structlog.get_logger(name)
    if initial_context:
        log = log.bind(**initial_context)
    return log


def bind_contextvars(**kwargs: Any) -> None:
    """
    Bind context variables that will be included in all subsequent log messages.

    The values are visible to every logger in the current async context
    (or thread), which makes them suitable for per-delivery context such as
    the request id or the GitHub delivery id.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_contextvars() -> None:
    """Clear all context variables from the current context."""
    structlog.contextvars.clear_contextvars()


def generate_request_id() -> str:
    """Generate a short unique request ID."""
    return f"req-{uuid.uuid4().hex[:12]}"
