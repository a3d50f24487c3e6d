# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration using structlog.

Two kinds of loggers write through the same pipeline:

- ``get_logger(__name__)`` returns a structlog logger for event-style
  records (``logger.info("enrollment_committed", class_id=...)``).
- ``logging.getLogger(__name__)`` records with %-style arguments are
  picked up by a ``ProcessorFormatter`` on the root handler, so their
  ``extra`` fields and bound context end up in the same output.

Development renders colored console lines, production renders JSON.

Example:
    >>> from src.utils.logging import setup_logging, get_logger
    >>> from src.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> logger = get_logger(__name__)
    >>> logger.info("enrollment_committed", class_id="abc", user_id="u1")
"""

import logging
import sys
from typing import TYPE_CHECKING, Optional, TextIO

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from src.core.config.settings import Settings

# Loggers that flood the output at INFO: pool checkouts, HTTP wire logs,
# APScheduler "job executed" lines, access logs.
_NOISY_LOGGERS = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "apscheduler",
    "asyncio",
    "redis",
    "google.auth",
)


def setup_logging(settings: "Settings", stream: Optional[TextIO] = None) -> None:
    """Configure structured logging for the application.

    Safe to call more than once; the root handler is replaced.

    Args:
        settings: Application settings containing log_level and debug flag.
        stream: Where the root handler writes. Defaults to ``sys.stdout``.
    """
    output = stream if stream is not None else sys.stdout
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    pretty = settings.is_development or settings.debug

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer: Processor
    if pretty:
        renderer = structlog.dev.ConsoleRenderer(colors=output.isatty())
    else:
        renderer = structlog.processors.JSONRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *([] if pretty else [structlog.processors.format_exc_info]),
            renderer,
        ],
    )

    handler = logging.StreamHandler(output)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given module name."""
    return structlog.get_logger(name)


def bind_context(**kwargs: object) -> None:
    """Bind key-value pairs to every later log call in this context.

    The caller dependency binds ``user_id`` and ``membership`` so booking
    logs carry them without passing them around.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop all bound context variables.

    Called when a new request resolves its caller so context from a
    previous request on the same task does not leak.
    """
    structlog.contextvars.clear_contextvars()
