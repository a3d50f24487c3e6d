# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Eventually consistent read cache of the class schedule.

The cache mirrors the ordered class collection delivered by a store
subscription. Each snapshot replaces the previous one wholesale, so
readers always see one consistent collection. Everything answered from
here is advisory; the enrollment service re-checks inside a transaction.

After every snapshot the cache hands it to the auto-deactivation sweeper
as a background task. The subscription therefore never waits on sweeper
writes, whose own change events come back through the same subscription.

Example:
    cache = ClassReadCache(sweeper=AutoDeactivationSweeper(store))
    await cache.start(store.subscribe())
    cache.morning_classes
    cache.weekly_enrollment_count("user-1", "2024-06-03")
    await cache.stop()
"""

import asyncio
import logging
from typing import NamedTuple, Optional

from src.domains.schedule.sweeper import AutoDeactivationSweeper
from src.infrastructure.database.store import ClassSubscription
from src.models.gym_class import ClassRecord, count_week_bookings
from src.utils.datetime import WeekKey

logger = logging.getLogger(__name__)

NOON = 12


class _Snapshot(NamedTuple):
    classes: tuple[ClassRecord, ...]
    by_id: dict[str, ClassRecord]


_EMPTY = _Snapshot(classes=(), by_id={})


class ClassReadCache:
    """Latest ordered snapshot of every class.

    Attributes:
        loading: True until the first snapshot or error arrives.
        error: Message of the last subscription failure, cleared by the
            next successful snapshot.
    """

    def __init__(self, sweeper: Optional[AutoDeactivationSweeper] = None) -> None:
        self._sweeper = sweeper
        self._snapshot = _EMPTY
        self._subscription: Optional[ClassSubscription] = None
        self._sweeps: set[asyncio.Task] = set()
        self.loading = False
        self.error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._subscription is not None

    async def start(self, subscription: ClassSubscription) -> None:
        """Attach to a subscription and load the first snapshot."""
        if self._subscription is not None:
            raise RuntimeError("Class cache already started")
        self._subscription = subscription
        self.loading = True
        self.error = None
        await subscription.start(self._on_snapshot, self._on_error)

    async def stop(self) -> None:
        """Detach from the subscription and cancel running sweeps."""
        if self._subscription is not None:
            await self._subscription.stop()
            self._subscription = None

        sweeps = list(self._sweeps)
        for task in sweeps:
            task.cancel()
        if sweeps:
            await asyncio.gather(*sweeps, return_exceptions=True)
        self._sweeps.clear()

    # ========== Reads ==========

    @property
    def classes(self) -> tuple[ClassRecord, ...]:
        """All classes ordered by day of week and start time."""
        return self._snapshot.classes

    def get(self, class_id: str) -> Optional[ClassRecord]:
        return self._snapshot.by_id.get(class_id)

    @property
    def morning_classes(self) -> list[ClassRecord]:
        """Classes starting before noon."""
        return [record for record in self.classes if record.start_hour < NOON]

    @property
    def afternoon_classes(self) -> list[ClassRecord]:
        """Classes starting at or after noon."""
        return [record for record in self.classes if record.start_hour >= NOON]

    def weekly_enrollment_count(
        self,
        user_id: str,
        week_key: Optional[WeekKey],
        exclude_class_id: Optional[str] = None,
    ) -> int:
        """Count the user's cached bookings in a week.

        Args:
            user_id: User to count for.
            week_key: Monday of the week, None counts nothing.
            exclude_class_id: Class left out of the count.

        Returns:
            Number of dated classes in that week listing the user.
        """
        return count_week_bookings(self.classes, user_id, week_key, exclude_class_id)

    # ========== Subscription callbacks ==========

    async def _on_snapshot(self, classes: list[ClassRecord]) -> None:
        snapshot = tuple(classes)
        self._snapshot = _Snapshot(
            classes=snapshot,
            by_id={record.id: record for record in snapshot},
        )
        self.loading = False
        self.error = None
        logger.debug("Class cache refreshed with %d classes", len(snapshot))
        self.schedule_sweep()

    async def _on_error(self, error: Exception) -> None:
        self.loading = False
        self.error = str(error)
        logger.warning("Class cache kept stale snapshot: %s", self.error)

    # ========== Sweeping ==========

    def schedule_sweep(self) -> Optional[asyncio.Task]:
        """Sweep the current snapshot in the background."""
        if self._sweeper is None or self._subscription is None:
            return None
        task = asyncio.create_task(self._sweeper.sweep(self._snapshot.classes))
        self._sweeps.add(task)
        task.add_done_callback(self._on_sweep_done)
        return task

    def _on_sweep_done(self, task: asyncio.Task) -> None:
        self._sweeps.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Class sweep crashed: %s", str(exc))
