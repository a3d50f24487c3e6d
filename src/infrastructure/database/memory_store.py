# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Process-local class store.

Honors the same optimistic concurrency contract as the SQL store. Reads
yield to the event loop so concurrent transactions interleave the way
they would against a real database; commits check and apply all writes
without yielding, which makes them atomic within the loop.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from src.infrastructure.database.store import (
    ClassStore,
    ClassTransaction,
    WriteConflictError,
)
from src.infrastructure.events.bus import EventBus
from src.models.gym_class import ClassRecord, ClassStatus
from src.utils.datetime import WeekKey, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _MemoryClassTransaction(ClassTransaction):
    def __init__(self, store: "InMemoryClassStore") -> None:
        super().__init__()
        self._store = store

    async def _read(self, class_id: str) -> Optional[ClassRecord]:
        await asyncio.sleep(0)
        return self._store._records.get(class_id)

    async def list_week(self, week_key: WeekKey) -> list[ClassRecord]:
        await asyncio.sleep(0)
        return [r for r in self._store._records.values() if r.week_key == week_key]

    async def apply_writes(self) -> None:
        records = self._store._records
        for class_id in self._writes:
            current = records.get(class_id)
            if current is None or current.version != self._read_versions[class_id]:
                raise WriteConflictError(class_id)

        for class_id, fields in self._writes.items():
            current = records[class_id]
            records[class_id] = current.model_copy(
                update={**fields, "version": current.version + 1}
            )


class InMemoryClassStore(ClassStore):
    """Class store holding records in a dict.

    Example:
        store = InMemoryClassStore(event_bus=EventBus())
        store.insert(ClassRecord(id="yoga-1", title="Yoga", capacity=10))
    """

    def __init__(
        self,
        records: Iterable[ClassRecord] = (),
        event_bus: Optional[EventBus] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(event_bus, **kwargs)
        self._records: dict[str, ClassRecord] = {}
        for record in records:
            self.insert(record)

    def insert(self, record: ClassRecord) -> None:
        """Seed or replace a record without publishing a change."""
        if record.enrolled_count != len(record.enrolled_user_ids):
            record = record.model_copy(
                update={"enrolled_count": len(record.enrolled_user_ids)}
            )
        self._records[record.id] = record

    async def get_class(self, class_id: str) -> Optional[ClassRecord]:
        await asyncio.sleep(0)
        return self._records.get(class_id)

    async def list_classes(self) -> list[ClassRecord]:
        await asyncio.sleep(0)
        return sorted(
            self._records.values(),
            key=lambda r: (r.day_of_week, r.start_time),
        )

    async def _attempt(
        self, callback: Callable[[ClassTransaction], Awaitable[T]]
    ) -> tuple[T, list[str]]:
        txn = _MemoryClassTransaction(self)
        result = await callback(txn)
        await txn.apply_writes()
        return result, txn.written_ids

    async def _set_status(self, class_id: str, status: ClassStatus) -> bool:
        await asyncio.sleep(0)
        current = self._records.get(class_id)
        if current is None:
            return False
        if not self._check_transition(current.status, status):
            return False
        self._records[class_id] = current.model_copy(
            update={
                "status": status,
                "updated_at": utc_now(),
                "version": current.version + 1,
            }
        )
        return True
