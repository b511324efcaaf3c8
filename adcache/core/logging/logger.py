#!/usr/bin/env python3
"""
Structured Logging Module using structlog

This module provides structured logging for the caching layer with:
- Request ID correlation across the fetch, refresh and rate-limit paths
- Stage numbering for execution flow
- JSON formatting for log aggregation
- Redaction of upstream access tokens and e-mail addresses

Architectural Decision: structlog for production logging
- Context-aware logging with automatic field injection
- JSON output for log aggregation
- Async-safe through context variables
"""

import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, WrappedLogger

from adcache.core.config.settings import get_settings

# Context variable for the current request ID
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_EMAIL_RE = re.compile(r"\b[\w.-]+@[\w.-]+\.\w+\b")
# Graph API user/page tokens start with EAA; bearer tokens in URLs use access_token=
_ACCESS_TOKEN_RE = re.compile(r"\bEAA[a-zA-Z0-9]{20,}\b")
_TOKEN_PARAM_RE = re.compile(r"(access_token=)[^&\s]+")


def add_request_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add request ID to log event from context variable.

    STAGE-L.1: Request ID injection
    """
    request_id = request_id_ctx.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add ISO timestamp to log event.

    STAGE-L.2: Timestamp injection
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def redact_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Redact secrets and PII from log messages and string fields.

    STAGE-L.3: Redaction

    Patterns redacted:
    - Email addresses → [EMAIL]
    - Upstream access tokens (EAA...) → [REDACTED]
    - access_token=... query parameters → access_token=[REDACTED]
    """
    for field, value in list(event_dict.items()):
        if not isinstance(value, str):
            continue
        value = _EMAIL_RE.sub("[EMAIL]", value)
        value = _ACCESS_TOKEN_RE.sub("[REDACTED]", value)
        value = _TOKEN_PARAM_RE.sub(r"\1[REDACTED]", value)
        event_dict[field] = value

    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Upper-case the level field.

    STAGE-L.4: Log level injection
    """
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Setup structured logging with structlog.

    STAGE-L: Logging initialization

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
    """
    settings = get_settings()

    log_level = log_level or settings.logging.LOG_LEVEL
    log_format = log_format or settings.logging.LOG_FORMAT

    logging.basicConfig(
        format="%(message)s", stream=sys.stdout, level=getattr(logging, log_level.upper())
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_request_id,
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_secrets,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("message", key="value", stage="2.1")
    """
    return structlog.get_logger(name)


def set_request_id(request_id: str) -> None:
    """Set the request ID for the current context."""
    request_id_ctx.set(request_id)


def get_request_id() -> str | None:
    """Get the request ID of the current context."""
    return request_id_ctx.get()


def clear_request_id() -> None:
    """Clear the request ID at the end of request processing."""
    request_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Log a message with stage information.

    Args:
        logger: Logger instance
        stage: Stage identifier (e.g., Stage.CACHE_MISS)
        message: Log message
        level: Log level (debug, info, warning, error, critical)
        **kwargs: Additional fields to log

    Usage:
        log_stage(logger, Stage.CACHE_STALE_HIT, "Serving stale entry", cache_key="abc")
    """
    log_func = getattr(logger, level.lower())
    log_func(message, stage=str(getattr(stage, "value", stage)), **kwargs)
