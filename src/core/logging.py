"""Structured logging foundation for the relay.

Provides JSON logging (prod) or colored console (dev) via structlog.
Includes an audit trail logger for trade and credential lifecycle events.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, cast

import structlog


def _configure_structlog() -> None:
    """Configure structlog based on RELAY_ENV."""
    env = os.environ.get("RELAY_ENV", "development")
    log_level_name = os.environ.get("RELAY_LOG_LEVEL", "INFO").upper()
    log_level = logging.getLevelName(log_level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if env == "production":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _LOG_LEVELS["current"] = log_level_name


_LOG_LEVELS: dict[str, str] = {"current": "INFO"}
_CONFIGURED = False


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named logger instance.

    Args:
        name: Logger name (typically module __name__).

    Returns:
        Configured structlog BoundLogger.
    """
    global _CONFIGURED
    if not _CONFIGURED:
        _configure_structlog()
        _CONFIGURED = True

    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


def get_audit_logger() -> structlog.stdlib.BoundLogger:
    """Get the audit trail logger for trades and credential changes.

    All audit events are logged with event_type for downstream filtering.
    """
    return get_logger("relay.audit")


def mask_secret(value: str | None) -> str:
    """Mask all but the last 4 characters of a secret."""
    if not value or len(value) <= 4:
        return "****"
    return "*" * (len(value) - 4) + value[-4:]


def short_address(address: str | None) -> str:
    """Render an address as 0x1234...abcd for log lines."""
    if not address:
        return "none"
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def log_trade_event(
    action: str,
    owner_address: str,
    **kwargs: Any,
) -> None:
    """Log a trade or credential lifecycle event to the audit trail.

    Args:
        action: Event type (trade_submit, trade_retry, credentials_stored, ...).
        owner_address: Owner wallet address the event concerns.
        **kwargs: Additional context (status, attempted_with, order_id, ...).
    """
    logger = get_audit_logger()
    logger.info(
        "relay_event",
        event_type="audit",
        action=action,
        owner=short_address(owner_address),
        **kwargs,
    )
