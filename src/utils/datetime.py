# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for the Vitbox enrollment backend.

This module provides standardized datetime operations to ensure consistency
across the codebase, plus the calendar helpers the booking rules rely on.

Design Decisions:
-----------------
1. All timestamps are stored in UTC
2. All Python datetimes are timezone-aware
3. Class dates (``YYYY-MM-DD``) and start times (``HH:MM``) are wall-clock
   values in the schedule timezone; they only become instants here
4. Weeks start on Monday regardless of locale

Usage:
------
    from src.utils.datetime import utc_now, week_key_of, has_started

    week_key_of("2024-06-05")          # "2024-06-03"
    has_started(gym_class, now=utc_now())
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Protocol

# Monday (ISO date) of the calendar week a class belongs to.
WeekKey = str


class Scheduled(Protocol):
    """Anything carrying a calendar date and a start time."""

    date: str | None
    start_time: str | None


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_class_date(date_string: str | None) -> date | None:
    """Parse a ``YYYY-MM-DD`` class date.

    Args:
        date_string: Calendar date string, possibly empty or None.

    Returns:
        The parsed date, or None when missing or unparseable.
    """
    if not date_string:
        return None
    try:
        return date.fromisoformat(date_string.strip())
    except (TypeError, ValueError):
        return None


def week_key_of(date_string: str | None) -> WeekKey | None:
    """Map a calendar date to the Monday of its week.

    Args:
        date_string: Calendar date string (``YYYY-MM-DD``).

    Returns:
        ISO date of that week's Monday, or None when the input is missing
        or unparseable. None means the class is not week-scoped and does
        not count toward any quota.

    Example:
        >>> week_key_of("2024-06-09")   # a Sunday
        '2024-06-03'
    """
    parsed = parse_class_date(date_string)
    if parsed is None:
        return None
    monday = parsed - timedelta(days=parsed.weekday())
    return monday.isoformat()


def week_bounds(week_key: WeekKey) -> tuple[date, date]:
    """Return the Monday and Sunday of a week key (inclusive)."""
    monday = date.fromisoformat(week_key)
    return monday, monday + timedelta(days=6)


def class_start_at(
    date_string: str | None,
    start_time: str | None,
    tz: tzinfo = timezone.utc,
) -> datetime | None:
    """Combine a class date and ``HH:MM`` start time into an instant.

    Args:
        date_string: Calendar date string.
        start_time: Wall-clock start time.
        tz: Timezone the schedule is expressed in.

    Returns:
        Timezone-aware start instant, or None if either part is missing
        or unparseable.
    """
    class_date = parse_class_date(date_string)
    if class_date is None or not start_time:
        return None
    try:
        start = time.fromisoformat(start_time.strip())
    except (TypeError, ValueError):
        return None
    return datetime.combine(class_date, start.replace(tzinfo=None), tzinfo=tz)


def has_started(
    gym_class: Scheduled,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> bool:
    """Check whether a class's start instant has been reached.

    Fails open: ambiguous data (no date, no start time, garbage in either)
    never counts as started.

    Args:
        gym_class: Object with ``date`` and ``start_time`` attributes.
        now: Reference instant, defaults to the current UTC time.
        tz: Timezone the schedule is expressed in.

    Returns:
        True when ``now`` is at or after the class start.
    """
    start = class_start_at(gym_class.date, gym_class.start_time, tz)
    if start is None:
        return False
    reference = ensure_utc(now) or utc_now()
    return reference >= start
