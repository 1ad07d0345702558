"""Structured logging configuration.

Every module logs through its own bound logger (``get_logger(__name__)``),
so each event carries the emitting module under ``logger``. Signature
material never reaches the log output.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"authorization", "signature", "private_key", "key_passphrase"})
# Chatty third-party loggers, never more verbose than WARNING
TRANSPORT_LOGGERS = ("httpx", "httpcore")


def redact_credentials(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace the values of credential-bearing keys."""
    for key in event_dict:
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def setup_logging(level: str = "INFO", log_format: str = "json") -> structlog.stdlib.BoundLogger:
    """Configure structlog and the stdlib loggers used by the transport.

    Args:
        level: Minimum level name, e.g. ``"DEBUG"``.
        log_format: ``"json"`` for machine output, anything else for the
            console renderer.

    Returns:
        The package root logger.
    """
    numeric_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)
    for name in TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_credentials,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    return get_logger("manta_client")


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """Get a bound logger tagged with the emitting module."""
    logger = structlog.get_logger(name)
    if name:
        initial_context.setdefault("logger", name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger
