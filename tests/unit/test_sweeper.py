# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the auto-deactivation sweeper."""

import asyncio
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from src.domains.schedule.sweeper import AutoDeactivationSweeper, SweepResult
from src.infrastructure.database.memory_store import InMemoryClassStore
from src.infrastructure.database.store import StoreUnavailableError
from src.models.gym_class import ClassStatus

NOW = datetime(2024, 6, 5, 9, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


class FlakyStore(InMemoryClassStore):
    """Fails status writes for selected classes."""

    def __init__(self, *args, failing: set[str], **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.failing = failing

    async def _set_status(self, class_id, status):
        if class_id in self.failing:
            raise StoreUnavailableError(f"write to {class_id} timed out")
        return await super()._set_status(class_id, status)


class GatedStore(InMemoryClassStore):
    """Holds status writes until released."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.release = asyncio.Event()
        self.writes = 0

    async def _set_status(self, class_id, status):
        self.writes += 1
        await self.release.wait()
        return await super()._set_status(class_id, status)


class TestDue:
    """Tests for selecting classes to deactivate."""

    def test_started_active_classes_are_due(self, memory_store, make_class) -> None:
        sweeper = AutoDeactivationSweeper(memory_store, clock=fixed_clock)
        classes = [
            make_class("past", date="2024-06-05", start_time="08:00"),
            make_class("now", date="2024-06-05", start_time="09:00"),
            make_class("later", date="2024-06-05", start_time="10:00"),
            make_class("done", date="2024-06-04", start_time="08:00", status=ClassStatus.INACTIVE),
        ]

        assert [record.id for record in sweeper.due(classes)] == ["past", "now"]

    def test_incomplete_schedule_is_never_due(self, memory_store, make_class) -> None:
        sweeper = AutoDeactivationSweeper(memory_store, clock=fixed_clock)
        classes = [
            make_class("undated", date=None, start_time="08:00"),
            make_class("untimed", date="2024-06-01", start_time=""),
            make_class("garbage", date="yesterday", start_time="08:00"),
        ]

        assert sweeper.due(classes) == []

    def test_schedule_timezone(self, memory_store, make_class) -> None:
        sweeper = AutoDeactivationSweeper(
            memory_store, tz=ZoneInfo("America/Bogota"), clock=fixed_clock
        )
        # 07:00 in Bogota is 12:00 UTC, three hours after NOW
        classes = [make_class("c1", date="2024-06-05", start_time="07:00")]

        assert sweeper.due(classes) == []


class TestSweep:
    """Tests for sweep."""

    @pytest.mark.asyncio
    async def test_deactivates_started_classes(self, memory_store, make_class) -> None:
        past = make_class("past", date="2024-06-05", start_time="08:00", enrolled=("u1",))
        future = make_class("future", date="2030-06-05", start_time="08:00")
        memory_store.insert(past)
        memory_store.insert(future)
        sweeper = AutoDeactivationSweeper(memory_store, clock=fixed_clock)

        result = await sweeper.sweep([past, future])

        assert result.deactivated == ["past"]
        assert sweeper.last_result is result
        stored = await memory_store.get_class("past")
        assert stored.status is ClassStatus.INACTIVE
        assert stored.enrolled_user_ids == ("u1",)
        assert (await memory_store.get_class("future")).status is ClassStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_nothing_due(self, memory_store, make_class) -> None:
        sweeper = AutoDeactivationSweeper(memory_store, clock=fixed_clock)

        result = await sweeper.sweep([make_class("future", date="2030-06-05")])

        assert result == SweepResult()
        assert result.attempted == 0
        assert sweeper.last_result is None

    @pytest.mark.asyncio
    async def test_already_inactive_in_store(self, memory_store, make_class) -> None:
        stale = make_class("c1", date="2024-06-05", start_time="08:00")
        memory_store.insert(stale.model_copy(update={"status": ClassStatus.INACTIVE}))
        sweeper = AutoDeactivationSweeper(memory_store, clock=fixed_clock)

        result = await sweeper.sweep([stale])

        assert result.unchanged == ["c1"]
        assert result.deactivated == []

    @pytest.mark.asyncio
    async def test_failures_do_not_block_other_classes(self, event_bus, make_class) -> None:
        classes = [
            make_class("a", date="2024-06-05", start_time="06:00"),
            make_class("bad", date="2024-06-05", start_time="07:00"),
            make_class("c", date="2024-06-05", start_time="08:00"),
        ]
        store = FlakyStore(classes, event_bus, failing={"bad"})
        sweeper = AutoDeactivationSweeper(store, clock=fixed_clock)

        result = await sweeper.sweep(classes)

        assert sorted(result.deactivated) == ["a", "c"]
        assert list(result.failed) == ["bad"]
        assert "timed out" in result.failed["bad"]
        assert result.attempted == 3
        assert (await store.get_class("bad")).status is ClassStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_in_flight_classes_are_not_written_twice(self, event_bus, make_class) -> None:
        record = make_class("c1", date="2024-06-05", start_time="08:00")
        store = GatedStore([record], event_bus)
        sweeper = AutoDeactivationSweeper(store, clock=fixed_clock)

        first = asyncio.create_task(sweeper.sweep([record]))
        while store.writes == 0:
            await asyncio.sleep(0)

        second = await sweeper.sweep([record])
        store.release.set()
        first_result = await first

        assert second.attempted == 0
        assert first_result.deactivated == ["c1"]
        assert store.writes == 1
