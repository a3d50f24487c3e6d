# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pure enrollment rules.

These functions take a class record as read inside a transaction and
either reject the change or describe the next state. They never touch
the store.
"""

from dataclasses import dataclass

from src.domains.enrollment.exceptions import (
    AlreadyEnrolledError,
    CapacityReachedError,
    ClassUnavailableError,
    NotEnrolledError,
    QuotaExceededError,
)
from src.models.gym_class import ClassRecord, OccupancyState


@dataclass(frozen=True)
class EnrollmentDecision:
    """Accepted change to a class roster.

    Attributes:
        class_id: Class being changed.
        enrolled_user_ids: Roster after the change.
        before: Occupancy before the change.
        after: Occupancy after the change.
    """

    class_id: str
    enrolled_user_ids: tuple[str, ...]
    before: OccupancyState
    after: OccupancyState

    @property
    def enrolled_count(self) -> int:
        return len(self.enrolled_user_ids)

    @property
    def slot_freed(self) -> bool:
        """The class went from full to having a free slot."""
        return self.before is OccupancyState.FULL and self.after is OccupancyState.OPEN


def decide_enroll(
    record: ClassRecord,
    user_id: str,
    *,
    quota: int,
    weekly_count: int,
) -> EnrollmentDecision:
    """Check a booking against the class state and the user's quota.

    Checks run in a fixed order: status, duplicate booking, capacity,
    weekly quota. Undated classes are exempt from the quota.

    Args:
        record: Class as read inside the transaction.
        user_id: User asking for a slot.
        quota: Weekly booking quota of the user's tier.
        weekly_count: User's other bookings in the class week.

    Returns:
        The accepted roster change.

    Raises:
        ClassUnavailableError: The class is not active.
        AlreadyEnrolledError: The user already has a slot.
        CapacityReachedError: No free slot is left.
        QuotaExceededError: The user reached the weekly quota.
    """
    if not record.is_active:
        raise ClassUnavailableError(
            f"Class {record.id} is not accepting bookings", record.id
        )
    if record.is_enrolled(user_id):
        raise AlreadyEnrolledError(
            f"User {user_id} is already enrolled in class {record.id}", record.id
        )
    if len(record.enrolled_user_ids) >= record.capacity:
        raise CapacityReachedError(f"Class {record.id} is full", record.id)
    if record.week_key is not None and weekly_count >= quota:
        raise QuotaExceededError(
            f"Weekly quota of {quota} classes reached for week {record.week_key}",
            record.id,
            quota=quota,
            weekly_count=weekly_count,
        )

    enrolled = (*record.enrolled_user_ids, user_id)
    return EnrollmentDecision(
        class_id=record.id,
        enrolled_user_ids=enrolled,
        before=record.occupancy,
        after=OccupancyState.of(len(enrolled), record.capacity),
    )


def decide_unenroll(record: ClassRecord, user_id: str) -> EnrollmentDecision:
    """Release a user's slot.

    Raises:
        NotEnrolledError: The user has no slot in the class.
    """
    if not record.is_enrolled(user_id):
        raise NotEnrolledError(
            f"User {user_id} is not enrolled in class {record.id}", record.id
        )

    enrolled = tuple(uid for uid in record.enrolled_user_ids if uid != user_id)
    return EnrollmentDecision(
        class_id=record.id,
        enrolled_user_ids=enrolled,
        before=record.occupancy,
        after=OccupancyState.of(len(enrolled), record.capacity),
    )

