# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for the Vitbox enrollment backend.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations and week helpers
"""

from src.utils.datetime import (
    WeekKey,
    class_start_at,
    ensure_utc,
    has_started,
    parse_class_date,
    utc_now,
    week_bounds,
    week_key_of,
)
from src.utils.logging import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Datetime
    "WeekKey",
    "utc_now",
    "ensure_utc",
    "parse_class_date",
    "week_key_of",
    "week_bounds",
    "class_start_at",
    "has_started",
]
