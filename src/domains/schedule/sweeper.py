# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Auto-deactivation of classes that have started.

The sweeper looks at a snapshot of classes and flips every active class
whose start instant has passed to inactive. Each flip is an independent
store write; failures are logged per class and never abort the others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Callable, Iterable

from src.infrastructure.database.store import ClassStore
from src.models.gym_class import ClassRecord, ClassStatus
from src.utils.datetime import has_started, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Outcome of one sweep.

    Attributes:
        deactivated: Classes switched to inactive.
        unchanged: Classes another writer had already deactivated.
        failed: Class id to error message for failed writes.
    """

    deactivated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return len(self.deactivated) + len(self.unchanged) + len(self.failed)


class AutoDeactivationSweeper:
    """Deactivates started classes found in cache snapshots.

    A class whose update is still in flight from an earlier sweep is not
    written again.

    Attributes:
        last_result: Outcome of the most recent sweep that found work.
    """

    def __init__(
        self,
        store: ClassStore,
        *,
        tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._tz = tz
        self._clock = clock
        self._in_flight: set[str] = set()
        self.last_result: SweepResult | None = None

    def due(self, classes: Iterable[ClassRecord], now: datetime | None = None) -> list[ClassRecord]:
        """Active classes that have started and are not being written."""
        reference = now or self._clock()
        return [
            record
            for record in classes
            if record.is_active
            and record.id not in self._in_flight
            and has_started(record, reference, self._tz)
        ]

    async def sweep(self, classes: Iterable[ClassRecord]) -> SweepResult:
        """Deactivate every due class concurrently.

        Never raises for individual write failures.
        """
        due = self.due(classes)
        result = SweepResult()
        if not due:
            return result

        ids = [record.id for record in due]
        self._in_flight.update(ids)
        try:
            outcomes = await asyncio.gather(
                *(
                    self._store.update_status(class_id, ClassStatus.INACTIVE)
                    for class_id in ids
                ),
                return_exceptions=True,
            )
        finally:
            self._in_flight.difference_update(ids)

        for class_id, outcome in zip(ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Failed to deactivate class %s: %s", class_id, str(outcome))
                result.failed[class_id] = str(outcome)
            elif outcome:
                result.deactivated.append(class_id)
            else:
                result.unchanged.append(class_id)

        if result.deactivated:
            logger.info("Deactivated %d started classes", len(result.deactivated))
        self.last_result = result
        return result
