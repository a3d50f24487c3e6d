# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy implementation of the class store.

Transactions read rows inside a session transaction and commit each
buffered write as::

    UPDATE classes SET ..., version = :read_version + 1
    WHERE id = :id AND version = :read_version

Zero affected rows means another writer got there first.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.infrastructure.database.models import GymClassRow
from src.infrastructure.database.store import (
    ClassStore,
    ClassTransaction,
    InvalidClassRecordError,
    StoreUnavailableError,
    WriteConflictError,
)
from src.infrastructure.events.bus import EventBus
from src.models.gym_class import ClassRecord, ClassStatus
from src.utils.datetime import WeekKey, utc_now, week_bounds

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_record(row: GymClassRow) -> ClassRecord:
    """Validate a row into a ClassRecord.

    Raises:
        InvalidClassRecordError: The row breaks a ClassRecord invariant,
            e.g. a non-positive capacity or a duplicated enrolled id.
    """
    try:
        return ClassRecord.model_validate(row)
    except ValidationError as e:
        logger.error("Class %s failed validation: %s", row.id, str(e))
        raise InvalidClassRecordError(row.id, e) from e


def _to_columns(fields: dict[str, Any]) -> dict[str, Any]:
    values = dict(fields)
    if "enrolled_user_ids" in values:
        values["enrolled_user_ids"] = list(values["enrolled_user_ids"])
    if "status" in values:
        values["status"] = ClassStatus(values["status"]).value
    return values


class _SqlClassTransaction(ClassTransaction):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__()
        self._session = session

    async def _read(self, class_id: str) -> Optional[ClassRecord]:
        row = await self._session.scalar(
            select(GymClassRow)
            .where(GymClassRow.id == class_id)
            .execution_options(populate_existing=True)
        )
        return _to_record(row) if row is not None else None

    async def list_week(self, week_key: WeekKey) -> list[ClassRecord]:
        monday, sunday = week_bounds(week_key)
        rows = await self._session.scalars(
            select(GymClassRow).where(
                GymClassRow.date >= monday.isoformat(),
                GymClassRow.date <= sunday.isoformat(),
            )
        )
        records = [_to_record(row) for row in rows]
        return [record for record in records if record.week_key == week_key]

    async def apply_writes(self) -> None:
        for class_id, fields in self._writes.items():
            read_version = self._read_versions[class_id]
            result = await self._session.execute(
                update(GymClassRow)
                .where(GymClassRow.id == class_id, GymClassRow.version == read_version)
                .values(**_to_columns(fields), version=read_version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise WriteConflictError(class_id)


class SqlAlchemyClassStore(ClassStore):
    """Class store backed by the ``classes`` table.

    Example:
        store = SqlAlchemyClassStore(get_sessionmaker(), event_bus=get_event_bus())
        classes = await store.list_classes()
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        event_bus: Optional[EventBus] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(event_bus, **kwargs)
        self._sessionmaker = sessionmaker

    async def get_class(self, class_id: str) -> Optional[ClassRecord]:
        try:
            async with self._sessionmaker() as session:
                row = await session.get(GymClassRow, class_id)
                return _to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Failed to read class {class_id}", e) from e

    async def list_classes(self) -> list[ClassRecord]:
        try:
            async with self._sessionmaker() as session:
                rows = await session.scalars(
                    select(GymClassRow).order_by(
                        GymClassRow.day_of_week, GymClassRow.start_time
                    )
                )
                return [_to_record(row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreUnavailableError("Failed to list classes", e) from e

    async def _attempt(
        self, callback: Callable[[ClassTransaction], Awaitable[T]]
    ) -> tuple[T, list[str]]:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    txn = _SqlClassTransaction(session)
                    result = await callback(txn)
                    await txn.apply_writes()
                return result, txn.written_ids
        except SQLAlchemyError as e:
            raise StoreUnavailableError("Class transaction failed", e) from e

    async def _set_status(self, class_id: str, status: ClassStatus) -> bool:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    row = await session.get(GymClassRow, class_id, with_for_update=True)
                    if row is None:
                        return False
                    if not self._check_transition(ClassStatus(row.status), status):
                        return False
                    row.status = status.value
                    row.version = row.version + 1
                    row.updated_at = utc_now()
                return True
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Failed to update status of class {class_id}", e) from e
