# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gym class records and their state machines.

A ClassRecord is an immutable snapshot of one class document as read from
the store. Two state machines apply to it:

Occupancy (driven by enroll/unenroll):
    OPEN --enroll--> OPEN | FULL
    FULL --enroll--> rejected (capacity reached)
    OPEN | FULL --unenroll--> OPEN

Status (driven by the auto-deactivation sweeper only):
    ACTIVE --> INACTIVE
    INACTIVE --> (terminal)
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.utils.datetime import WeekKey, week_key_of


class ClassStatus(str, Enum):
    """Availability status of a class."""

    ACTIVE = "active"
    INACTIVE = "inactive"

    def can_transition_to(self, target: "ClassStatus") -> bool:
        """Check the status transition table.

        Args:
            target: Desired next status.

        Returns:
            True if the transition is legal.
        """
        return target in _STATUS_TRANSITIONS[self]


_STATUS_TRANSITIONS: dict[ClassStatus, frozenset[ClassStatus]] = {
    ClassStatus.ACTIVE: frozenset({ClassStatus.INACTIVE}),
    ClassStatus.INACTIVE: frozenset(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when a status change is not in the transition table."""

    def __init__(self, current: ClassStatus, target: ClassStatus) -> None:
        super().__init__(f"Illegal class status transition: {current.value} -> {target.value}")
        self.current = current
        self.target = target


class OccupancyState(str, Enum):
    """Occupancy of a class relative to its capacity."""

    OPEN = "open"
    FULL = "full"

    @classmethod
    def of(cls, enrolled: int, capacity: int) -> "OccupancyState":
        """Derive the occupancy state from counts."""
        return cls.FULL if enrolled >= capacity else cls.OPEN


class ClassRecord(BaseModel):
    """Snapshot of a scheduled gym session.

    Attributes:
        id: Store-assigned identifier.
        title: Class title shown to members.
        description: Free-text description.
        coach: Coach name.
        day_of_week: Day label used for schedule ordering.
        date: Optional calendar date (``YYYY-MM-DD``).
        start_time: Start time (``HH:MM``).
        end_time: End time (``HH:MM``).
        capacity: Maximum number of enrolled users.
        status: Availability status.
        enrolled_user_ids: Enrolled users, no duplicates.
        enrolled_count: Denormalized ``len(enrolled_user_ids)``.
        created_at: Creation timestamp.
        updated_at: Last mutation timestamp.
        version: Optimistic concurrency token maintained by the store.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    title: str
    description: str = ""
    coach: str = ""
    day_of_week: str = ""
    date: str | None = None
    start_time: str = ""
    end_time: str = ""
    capacity: int = Field(gt=0)
    status: ClassStatus = ClassStatus.ACTIVE
    enrolled_user_ids: tuple[str, ...] = ()
    enrolled_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    @model_validator(mode="after")
    def check_unique_enrollments(self) -> "ClassRecord":
        """Reject records listing a user more than once."""
        if len(set(self.enrolled_user_ids)) != len(self.enrolled_user_ids):
            raise ValueError(f"Class {self.id} lists a user more than once")
        return self

    @property
    def occupancy(self) -> OccupancyState:
        """Current occupancy state."""
        return OccupancyState.of(len(self.enrolled_user_ids), self.capacity)

    @property
    def is_full(self) -> bool:
        """Whether no free slot is left."""
        return self.occupancy is OccupancyState.FULL

    @property
    def is_active(self) -> bool:
        """Whether the class accepts bookings."""
        return self.status is ClassStatus.ACTIVE

    @property
    def free_slots(self) -> int:
        """Number of remaining slots."""
        return max(0, self.capacity - len(self.enrolled_user_ids))

    @property
    def week_key(self) -> WeekKey | None:
        """Monday of the class week, None for undated classes."""
        return week_key_of(self.date)

    @property
    def start_hour(self) -> int:
        """Hour of the start time, 0 when unknown."""
        try:
            return int((self.start_time or "00")[:2])
        except ValueError:
            return 0

    def is_enrolled(self, user_id: str) -> bool:
        """Check whether a user holds a slot in this class."""
        return user_id in self.enrolled_user_ids


def count_week_bookings(
    classes: Iterable[ClassRecord],
    user_id: str,
    week_key: WeekKey | None,
    exclude_class_id: str | None = None,
) -> int:
    """Count a user's bookings among the classes of one week.

    Undated classes never match, and a None week counts nothing.
    """
    if week_key is None:
        return 0
    return sum(
        1
        for record in classes
        if record.id != exclude_class_id
        and record.week_key == week_key
        and record.is_enrolled(user_id)
    )
