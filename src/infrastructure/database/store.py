# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class store contract.

The class store is the authoritative holder of class documents. It offers:

- Point and ordered collection reads
- Read-check-write transactions with optimistic concurrency: every
  document read inside a transaction remembers its ``version`` and every
  buffered write is committed as a conditional update on that version.
  A lost race re-runs the whole callback on fresh data.
- Non-transactional status updates
- A change feed: each committed write publishes ``classes.changed`` on the
  EventBus, and ClassSubscription turns that into ordered snapshots.

Implementations:
    SqlAlchemyClassStore: PostgreSQL (or any async SQLAlchemy URL).
    InMemoryClassStore: process-local, for development and tests.

Example:
    async def add_user(txn: ClassTransaction) -> ClassRecord:
        record = await txn.get(class_id)
        ids = (*record.enrolled_user_ids, user_id)
        txn.update(class_id, enrolled_user_ids=ids, enrolled_count=len(ids))
        return record

    await store.run_transaction(add_user)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, TypeVar
from uuid import uuid4

from src.infrastructure.database.connection import DatabaseError
from src.infrastructure.events.bus import EventBus, EventData
from src.infrastructure.events.types import EventTypes
from src.models.gym_class import ClassRecord, ClassStatus, InvalidStatusTransitionError
from src.utils.datetime import WeekKey

logger = logging.getLogger(__name__)

T = TypeVar("T")

SnapshotHandler = Callable[[list[ClassRecord]], Awaitable[None]]
ErrorHandler = Callable[[Exception], Awaitable[None]]

_WRITABLE_FIELDS = frozenset(
    {"enrolled_user_ids", "enrolled_count", "status", "updated_at"}
)


class WriteConflictError(Exception):
    """A buffered write lost an optimistic concurrency race.

    Raised inside a single transaction attempt and consumed by
    ClassStore.run_transaction, which retries.
    """

    def __init__(self, class_id: str) -> None:
        super().__init__(f"Class {class_id} was modified concurrently")
        self.class_id = class_id


class TransactionConflictError(DatabaseError):
    """Every attempt of a transaction lost a concurrency race.

    Attributes:
        attempts: Number of attempts made.
    """

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Transaction aborted after {attempts} conflicting attempts")
        self.attempts = attempts


class StoreUnavailableError(DatabaseError):
    """The backing store could not be reached or rejected the operation."""


class InvalidClassRecordError(StoreUnavailableError):
    """A stored class document does not form a valid ClassRecord.

    Attributes:
        class_id: Id of the offending document.
    """

    def __init__(self, class_id: str, original_error: Exception) -> None:
        super().__init__(f"Class {class_id} holds invalid data", original_error)
        self.class_id = class_id


class ClassTransaction(ABC):
    """Read-check-write scope handed to transaction callbacks.

    Writes are buffered and only applied once the callback returns. A
    class can only be updated after it was read through ``get`` in the
    same transaction, so that its version is known.
    """

    def __init__(self) -> None:
        self._read_versions: dict[str, int] = {}
        self._writes: dict[str, dict[str, Any]] = {}

    async def get(self, class_id: str) -> Optional[ClassRecord]:
        """Read a class inside the transaction.

        Returns:
            The current record, or None if it does not exist.
        """
        record = await self._read(class_id)
        if record is not None:
            self._read_versions[class_id] = record.version
        return record

    @abstractmethod
    async def _read(self, class_id: str) -> Optional[ClassRecord]:
        """Fetch one record from the backing store."""

    @abstractmethod
    async def list_week(self, week_key: WeekKey) -> list[ClassRecord]:
        """Fresh read of every dated class falling in a week.

        These reads do not take part in conflict detection.
        """

    def update(self, class_id: str, **fields: Any) -> None:
        """Buffer field updates for a class read in this transaction.

        Raises:
            ValueError: If the class was not read first or a field is not
                writable.
        """
        if class_id not in self._read_versions:
            raise ValueError(f"Class {class_id} must be read before it is updated")
        unknown = set(fields) - _WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields are not writable: {', '.join(sorted(unknown))}")
        if "enrolled_user_ids" in fields:
            fields["enrolled_user_ids"] = tuple(fields["enrolled_user_ids"])
        if "status" in fields:
            fields["status"] = ClassStatus(fields["status"])
        self._writes.setdefault(class_id, {}).update(fields)

    @property
    def written_ids(self) -> list[str]:
        """Classes with buffered writes."""
        return list(self._writes)

    @abstractmethod
    async def apply_writes(self) -> None:
        """Commit buffered writes conditionally on the read versions.

        Raises:
            WriteConflictError: If any class changed since it was read.
        """


class ClassStore(ABC):
    """Authoritative class document store.

    Attributes:
        origin: Identifier stamped on change events from this store.
        max_attempts: Attempts per transaction before giving up.
        retry_delay: Base delay between attempts, scaled by attempt number.
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        *,
        max_attempts: int = 5,
        retry_delay: float = 0.05,
        origin: Optional[str] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._event_bus = event_bus
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.origin = origin or uuid4().hex

    @property
    def event_bus(self) -> Optional[EventBus]:
        """Bus receiving change events, if any."""
        return self._event_bus

    @abstractmethod
    async def get_class(self, class_id: str) -> Optional[ClassRecord]:
        """Read a single class outside any transaction."""

    @abstractmethod
    async def list_classes(self) -> list[ClassRecord]:
        """Read every class ordered by (day_of_week, start_time)."""

    @abstractmethod
    async def _attempt(
        self, callback: Callable[[ClassTransaction], Awaitable[T]]
    ) -> tuple[T, list[str]]:
        """Run one transaction attempt.

        Returns:
            The callback result and the ids of written classes.

        Raises:
            WriteConflictError: If the commit lost a race.
            StoreUnavailableError: If the backing store failed.
        """

    @abstractmethod
    async def _set_status(self, class_id: str, status: ClassStatus) -> bool:
        """Write a status unconditionally on version.

        Returns:
            True if the document was changed.
        """

    async def run_transaction(
        self, callback: Callable[[ClassTransaction], Awaitable[T]]
    ) -> T:
        """Run a read-check-write callback atomically.

        The callback may run several times. Exceptions it raises abort the
        attempt without writing and propagate unchanged.

        Raises:
            TransactionConflictError: If every attempt conflicted.
            StoreUnavailableError: If the backing store failed.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                result, written = await self._attempt(callback)
            except WriteConflictError as e:
                logger.debug(
                    "Transaction attempt %d/%d conflicted on class %s",
                    attempt,
                    self.max_attempts,
                    e.class_id,
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay * attempt)
                continue

            for class_id in written:
                await self._publish_change(class_id, "transaction")
            return result

        logger.warning("Transaction gave up after %d attempts", self.max_attempts)
        raise TransactionConflictError(self.max_attempts)

    async def update_status(self, class_id: str, status: ClassStatus) -> bool:
        """Change a class status outside any transaction.

        Setting the status a class already has is a no-op.

        Returns:
            True if the status was changed, False if the class does not
            exist or already had that status.

        Raises:
            InvalidStatusTransitionError: If the transition is not allowed.
            StoreUnavailableError: If the backing store failed.
        """
        changed = await self._set_status(class_id, ClassStatus(status))
        if changed:
            await self._publish_change(class_id, "status")
        return changed

    def subscribe(self) -> "ClassSubscription":
        """Create a subscription to ordered snapshots of all classes."""
        return ClassSubscription(self)

    @staticmethod
    def _check_transition(current: ClassStatus, target: ClassStatus) -> bool:
        """Validate a status change.

        Returns:
            False when the status is already the target.

        Raises:
            InvalidStatusTransitionError: If the transition is not allowed.
        """
        if current is target:
            return False
        if not current.can_transition_to(target):
            raise InvalidStatusTransitionError(current, target)
        return True

    async def _publish_change(self, class_id: str, reason: str) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.publish(
            EventTypes.Classes.CHANGED,
            {"class_id": class_id, "reason": reason, "origin": self.origin},
        )


class ClassSubscription:
    """Ordered snapshots of the class collection.

    Delivers a full snapshot on start and after every change event seen
    on the store's EventBus. Reloads are serialized so snapshots arrive
    in commit order.
    """

    def __init__(self, store: ClassStore) -> None:
        self._store = store
        self._lock = asyncio.Lock()
        self._on_snapshot: Optional[SnapshotHandler] = None
        self._on_error: Optional[ErrorHandler] = None
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    async def start(
        self,
        on_snapshot: SnapshotHandler,
        on_error: Optional[ErrorHandler] = None,
    ) -> None:
        """Start delivering snapshots.

        Args:
            on_snapshot: Receives the full ordered collection.
            on_error: Receives load failures. The subscription stays
                active and retries on the next change.
        """
        if self._active:
            raise RuntimeError("Subscription already started")
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._active = True

        bus = self._store.event_bus
        if bus is not None:
            bus.subscribe(EventTypes.Classes.CHANGED, self._on_change)
        await self.refresh()

    async def stop(self) -> None:
        """Stop delivering snapshots."""
        if not self._active:
            return
        self._active = False
        bus = self._store.event_bus
        if bus is not None:
            bus.unsubscribe(EventTypes.Classes.CHANGED, self._on_change)

    async def refresh(self) -> None:
        """Reload the collection and deliver it."""
        async with self._lock:
            if not self._active or self._on_snapshot is None:
                return
            try:
                classes = await self._store.list_classes()
            except DatabaseError as e:
                logger.warning("Class snapshot reload failed: %s", str(e))
                if self._on_error is not None:
                    await self._on_error(e)
                return
            await self._on_snapshot(classes)

    async def _on_change(self, event: EventData) -> None:
        logger.debug(
            "Class %s changed (%s), reloading snapshot",
            event.payload.get("class_id"),
            event.payload.get("reason"),
        )
        await self.refresh()
