# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment service for booking and releasing class slots.

This module provides the EnrollmentService class for:
- Enrolling a user into a class under capacity and weekly quota limits
- Releasing a slot and announcing it when a full class opens up
- Advisory weekly-count and quota queries backed by the read cache

Every mutation runs as a store transaction that re-reads the class and
re-checks all rules; the cache is only used to reject hopeless requests
early.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from src.domains.enrollment.decision import decide_enroll, decide_unenroll
from src.domains.enrollment.exceptions import (
    ClassNotFoundError,
    ConflictError,
    QuotaExceededError,
    StoreUnavailableError,
)
from src.domains.membership.policy import MembershipPolicy
from src.domains.schedule.cache import ClassReadCache
from src.infrastructure.database.connection import DatabaseError
from src.infrastructure.database.store import (
    ClassStore,
    ClassTransaction,
    TransactionConflictError,
)
from src.infrastructure.notifications.slot import SlotNotifier
from src.models.gym_class import ClassRecord, count_week_bookings
from src.models.membership import MembershipTier
from src.utils.datetime import WeekKey, utc_now
from src.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class UnenrollResult:
    """Outcome of a committed unenrollment.

    Attributes:
        record: Class state after the commit.
        slot_freed: The class went from full to having a free slot.
        notified: The slot-freed notice was delivered.
    """

    record: ClassRecord
    slot_freed: bool
    notified: bool


class EnrollmentService:
    """Service for managing class enrollments.

    Attributes:
        store: Authoritative class store.
        cache: Read cache used for advisory checks.
        policy: Weekly quota per membership tier.
        notifier: Receives slot-freed notices, optional.
    """

    def __init__(
        self,
        store: ClassStore,
        cache: ClassReadCache,
        policy: MembershipPolicy,
        notifier: Optional[SlotNotifier] = None,
        *,
        dispatch_timeout: float = 10.0,
    ) -> None:
        self.store = store
        self.cache = cache
        self.policy = policy
        self.notifier = notifier
        self.dispatch_timeout = dispatch_timeout

    def weekly_enrollment_count(
        self,
        user_id: str,
        week_key: Optional[WeekKey],
        exclude_class_id: Optional[str] = None,
    ) -> int:
        """Advisory count of the user's bookings in a week."""
        return self.cache.weekly_enrollment_count(user_id, week_key, exclude_class_id)

    def is_quota_reached(
        self,
        user_id: str,
        tier: MembershipTier | str | None,
        record: ClassRecord,
    ) -> bool:
        """Advisory check whether booking ``record`` would exceed the quota.

        Undated classes never reach the quota.
        """
        week_key = record.week_key
        if week_key is None:
            return False
        count = self.weekly_enrollment_count(user_id, week_key, exclude_class_id=record.id)
        return count >= self.policy.quota_for(tier)

    async def enroll(
        self,
        class_id: str,
        user_id: str,
        tier: MembershipTier | str | None,
    ) -> ClassRecord:
        """Book a slot for a user.

        The weekly quota spans several class documents while the
        transaction only guards this one. Two requests racing into
        different classes of the same week can therefore both pass the
        in-transaction recount; the quota can be exceeded by at most the
        number of such concurrent requests.

        Args:
            class_id: Class to book.
            user_id: User taking the slot.
            tier: User's membership tier, bronze when unknown.

        Returns:
            The committed class record.

        Raises:
            QuotaExceededError: The weekly quota is used up.
            ClassNotFoundError: The class does not exist.
            ClassUnavailableError: The class is not active.
            AlreadyEnrolledError: The user already has a slot.
            CapacityReachedError: The class is full.
            ConflictError: Concurrent writers won every retry.
            StoreUnavailableError: The store could not be reached.
        """
        quota = self.policy.quota_for(tier)

        cached = self.cache.get(class_id)
        if cached is not None and self.is_quota_reached(user_id, tier, cached):
            raise QuotaExceededError(
                f"Weekly quota of {quota} classes reached for week {cached.week_key}",
                class_id,
                quota=quota,
                weekly_count=self.weekly_enrollment_count(
                    user_id, cached.week_key, exclude_class_id=class_id
                ),
            )

        async def add_user(txn: ClassTransaction) -> ClassRecord:
            record = await txn.get(class_id)
            if record is None:
                raise ClassNotFoundError(f"Class {class_id} not found", class_id)

            weekly_count = 0
            if record.week_key is not None:
                week = await txn.list_week(record.week_key)
                weekly_count = count_week_bookings(
                    week, user_id, record.week_key, exclude_class_id=class_id
                )

            decision = decide_enroll(record, user_id, quota=quota, weekly_count=weekly_count)
            return _write(txn, record, decision.enrolled_user_ids)

        committed = await self._run(add_user)
        logger.info(
            "enrollment_committed",
            user_id=user_id,
            class_id=class_id,
            enrolled=committed.enrolled_count,
            capacity=committed.capacity,
        )
        return committed

    async def unenroll(self, class_id: str, user_id: str) -> UnenrollResult:
        """Release a user's slot.

        When the class was full before and has a free slot now, the
        notifier is called once after the commit. Notifier failures and
        timeouts are logged and do not affect the result.

        Raises:
            ClassNotFoundError: The class does not exist.
            NotEnrolledError: The user has no slot in the class.
            ConflictError: Concurrent writers won every retry.
            StoreUnavailableError: The store could not be reached.
        """

        async def remove_user(txn: ClassTransaction) -> tuple[ClassRecord, bool]:
            record = await txn.get(class_id)
            if record is None:
                raise ClassNotFoundError(f"Class {class_id} not found", class_id)

            decision = decide_unenroll(record, user_id)
            return _write(txn, record, decision.enrolled_user_ids), decision.slot_freed

        committed, slot_freed = await self._run(remove_user)
        logger.info(
            "unenrollment_committed",
            user_id=user_id,
            class_id=class_id,
            enrolled=committed.enrolled_count,
            capacity=committed.capacity,
            slot_freed=slot_freed,
        )

        notified = False
        if slot_freed:
            notified = await self._notify_slot_freed(committed)
        return UnenrollResult(record=committed, slot_freed=slot_freed, notified=notified)

    async def _run(self, callback: Callable[[ClassTransaction], Awaitable[T]]) -> T:
        try:
            return await self.store.run_transaction(callback)
        except TransactionConflictError as e:
            raise ConflictError(
                f"Class was modified concurrently, gave up after {e.attempts} attempts"
            ) from e
        except DatabaseError as e:
            logger.error("class_store_failure", error=str(e))
            raise StoreUnavailableError("Class store is unavailable") from e

    async def _notify_slot_freed(self, record: ClassRecord) -> bool:
        if self.notifier is None:
            return False
        try:
            result = await asyncio.wait_for(
                self.notifier.notify_slot_available(record.id, record.title),
                timeout=self.dispatch_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "slot_notification_timeout",
                class_id=record.id,
                timeout=self.dispatch_timeout,
            )
            return False
        except Exception as e:
            logger.warning("slot_notification_failed", class_id=record.id, error=str(e))
            return False
        return result.delivered


def _write(
    txn: ClassTransaction,
    record: ClassRecord,
    enrolled_user_ids: tuple[str, ...],
) -> ClassRecord:
    """Buffer the roster write and return the state it will commit."""
    fields = {
        "enrolled_user_ids": enrolled_user_ids,
        "enrolled_count": len(enrolled_user_ids),
        "updated_at": utc_now(),
    }
    txn.update(record.id, **fields)
    return record.model_copy(update={**fields, "version": record.version + 1})
