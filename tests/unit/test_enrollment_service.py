# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for Enrollment service."""

import asyncio
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from src.domains.enrollment.exceptions import (
    AlreadyEnrolledError,
    CapacityReachedError,
    ClassNotFoundError,
    ClassUnavailableError,
    ConflictError,
    NotEnrolledError,
    QuotaExceededError,
    StoreUnavailableError,
)
from src.domains.enrollment.service import EnrollmentService
from src.domains.schedule.cache import ClassReadCache
from src.infrastructure.database import store as class_store
from src.infrastructure.database.memory_store import InMemoryClassStore
from src.infrastructure.notifications.channels.base import (
    ChannelResult,
    ChannelType,
    DeliveryStatus,
)
from src.infrastructure.notifications.slot import SlotNotifier
from src.models.gym_class import ClassStatus


class RecordingNotifier(SlotNotifier):
    """Notifier double recording every call."""

    def __init__(
        self,
        status: DeliveryStatus = DeliveryStatus.SENT,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.status = status
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def notify_slot_available(self, class_id: str, class_title: str) -> ChannelResult:
        self.calls.append((class_id, class_title))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ChannelResult(channel=ChannelType.PUSH, status=self.status)


class ConflictingStore(InMemoryClassStore):
    """Store whose commits always lose the race."""

    async def _attempt(self, callback):
        raise class_store.WriteConflictError("c1")


class BrokenStore(InMemoryClassStore):
    """Store whose backend is down."""

    async def _attempt(self, callback):
        raise class_store.StoreUnavailableError("connection refused")


@pytest_asyncio.fixture
async def build_service(memory_store, policy):
    """Factory seeding the store and starting a cache over it."""
    caches: list[ClassReadCache] = []

    async def _build(*records, notifier=None, store=None, dispatch_timeout=1.0):
        target = store or memory_store
        for record in records:
            target.insert(record)
        cache = ClassReadCache()
        await cache.start(target.subscribe())
        caches.append(cache)
        return EnrollmentService(
            target, cache, policy, notifier, dispatch_timeout=dispatch_timeout
        )

    yield _build

    for cache in caches:
        await cache.stop()


class TestEnrollmentServiceEnroll:
    """Tests for enroll."""

    @pytest.mark.asyncio
    async def test_enroll_success(self, build_service, memory_store, make_class) -> None:
        """Test a booking is committed and reaches the cache."""
        service = await build_service(make_class("c1", capacity=2))

        committed = await service.enroll("c1", "u1", "bronze")

        assert committed.enrolled_user_ids == ("u1",)
        assert committed.enrolled_count == 1
        assert committed.version == 1

        stored = await memory_store.get_class("c1")
        assert stored.enrolled_user_ids == ("u1",)
        assert stored.enrolled_count == 1
        assert stored.updated_at is not None
        assert service.cache.get("c1").enrolled_user_ids == ("u1",)

    @pytest.mark.asyncio
    async def test_enroll_class_not_found(self, build_service) -> None:
        service = await build_service()

        with pytest.raises(ClassNotFoundError):
            await service.enroll("missing", "u1", "gold")

    @pytest.mark.asyncio
    async def test_enroll_inactive_class(self, build_service, make_class) -> None:
        service = await build_service(make_class("c1", status=ClassStatus.INACTIVE))

        with pytest.raises(ClassUnavailableError):
            await service.enroll("c1", "u1", "gold")

    @pytest.mark.asyncio
    async def test_enroll_twice_is_rejected_without_mutation(
        self, build_service, memory_store, make_class
    ) -> None:
        service = await build_service(make_class("c1", enrolled=("u1",)))

        with pytest.raises(AlreadyEnrolledError):
            await service.enroll("c1", "u1", "gold")

        stored = await memory_store.get_class("c1")
        assert stored.version == 0
        assert stored.enrolled_user_ids == ("u1",)

    @pytest.mark.asyncio
    async def test_enroll_full_class(self, build_service, make_class) -> None:
        service = await build_service(make_class("c1", capacity=1, enrolled=("u1",)))

        with pytest.raises(CapacityReachedError):
            await service.enroll("c1", "u2", "gold")

    @pytest.mark.asyncio
    async def test_bronze_third_booking_in_week_exceeds_quota(
        self, build_service, make_class
    ) -> None:
        """Test the weekly quota scenario for a bronze member."""
        service = await build_service(
            make_class("a", capacity=2, date="2024-06-03"),
            make_class("b", capacity=2, date="2024-06-05"),
            make_class("c", capacity=2, date="2024-06-09"),
        )

        await service.enroll("a", "userA", "bronze")
        await service.enroll("b", "userA", "bronze")

        with pytest.raises(QuotaExceededError) as exc_info:
            await service.enroll("c", "userA", "bronze")

        assert exc_info.value.quota == 2
        assert exc_info.value.weekly_count == 2

    @pytest.mark.asyncio
    async def test_other_weeks_and_undated_classes_do_not_count(
        self, build_service, make_class
    ) -> None:
        service = await build_service(
            make_class("a", date="2024-06-03"),
            make_class("b", date="2024-06-04"),
            make_class("next", date="2024-06-10"),
            make_class("open", date=None),
        )

        await service.enroll("a", "u1", "bronze")
        await service.enroll("b", "u1", "bronze")
        await service.enroll("next", "u1", "bronze")
        await service.enroll("open", "u1", "bronze")

        assert service.weekly_enrollment_count("u1", "2024-06-03") == 2
        assert service.weekly_enrollment_count("u1", "2024-06-10") == 1
        assert service.weekly_enrollment_count("u1", None) == 0

    @pytest.mark.asyncio
    async def test_quota_rejected_from_cache_without_transaction(
        self, build_service, memory_store, make_class
    ) -> None:
        service = await build_service(
            make_class("a", date="2024-06-03", enrolled=("u1",)),
            make_class("b", date="2024-06-04", enrolled=("u1",)),
            make_class("c", date="2024-06-05"),
        )
        memory_store.run_transaction = AsyncMock()

        with pytest.raises(QuotaExceededError):
            await service.enroll("c", "u1", "bronze")

        memory_store.run_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_cache_is_rechecked_in_transaction(
        self, build_service, memory_store, make_class
    ) -> None:
        """Test that bookings the cache has not seen still count."""
        service = await build_service(
            make_class("a", date="2024-06-03"),
            make_class("b", date="2024-06-04"),
            make_class("c", date="2024-06-05"),
        )
        # Written behind the cache's back, no change event
        memory_store.insert(make_class("a", date="2024-06-03", enrolled=("u1",)))
        memory_store.insert(make_class("b", date="2024-06-04", enrolled=("u1",)))
        assert service.weekly_enrollment_count("u1", "2024-06-03") == 0

        with pytest.raises(QuotaExceededError):
            await service.enroll("c", "u1", "bronze")

    @pytest.mark.asyncio
    async def test_unknown_tier_gets_bronze_quota(self, build_service, make_class) -> None:
        service = await build_service(
            make_class("a", date="2024-06-03", enrolled=("u1",)),
            make_class("b", date="2024-06-04", enrolled=("u1",)),
            make_class("c", date="2024-06-05"),
        )

        with pytest.raises(QuotaExceededError):
            await service.enroll("c", "u1", None)

    @pytest.mark.asyncio
    async def test_gold_member_has_more_room(self, build_service, make_class) -> None:
        service = await build_service(
            make_class("a", date="2024-06-03", enrolled=("u1",)),
            make_class("b", date="2024-06-04", enrolled=("u1",)),
            make_class("c", date="2024-06-05"),
        )

        committed = await service.enroll("c", "u1", "gold")

        assert committed.is_enrolled("u1")


class TestEnrollmentServiceConcurrency:
    """Concurrent bookings against the same store."""

    @pytest.mark.asyncio
    async def test_last_slot_race_has_one_winner(
        self, build_service, memory_store, make_class
    ) -> None:
        service = await build_service(make_class("c1", capacity=1))

        outcomes = await asyncio.gather(
            service.enroll("c1", "u1", "gold"),
            service.enroll("c1", "u2", "gold"),
            return_exceptions=True,
        )

        winners = [o for o in outcomes if not isinstance(o, BaseException)]
        losers = [o for o in outcomes if isinstance(o, BaseException)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], CapacityReachedError)

        stored = await memory_store.get_class("c1")
        assert stored.enrolled_count == 1
        assert len(stored.enrolled_user_ids) == 1

    @pytest.mark.asyncio
    async def test_capacity_holds_under_load(
        self, build_service, memory_store, make_class
    ) -> None:
        service = await build_service(make_class("c1", capacity=3))

        outcomes = await asyncio.gather(
            *(service.enroll("c1", f"u{i}", "gold") for i in range(10)),
            return_exceptions=True,
        )

        winners = [o for o in outcomes if not isinstance(o, BaseException)]
        assert len(winners) == 3
        assert all(
            isinstance(o, CapacityReachedError)
            for o in outcomes
            if isinstance(o, BaseException)
        )

        stored = await memory_store.get_class("c1")
        assert stored.enrolled_count == len(stored.enrolled_user_ids) == 3
        assert len(set(stored.enrolled_user_ids)) == 3

    @pytest.mark.asyncio
    async def test_cross_class_quota_race_is_bounded(
        self, build_service, memory_store, make_class
    ) -> None:
        """Test the tolerated quota race never exceeds one extra booking per racer."""
        service = await build_service(
            make_class("a", date="2024-06-03", enrolled=("u1",)),
            make_class("b", date="2024-06-04"),
            make_class("c", date="2024-06-05"),
        )

        outcomes = await asyncio.gather(
            service.enroll("b", "u1", "bronze"),
            service.enroll("c", "u1", "bronze"),
            return_exceptions=True,
        )

        winners = [o for o in outcomes if not isinstance(o, BaseException)]
        assert 1 <= len(winners) <= 2
        assert all(
            isinstance(o, QuotaExceededError)
            for o in outcomes
            if isinstance(o, BaseException)
        )

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_conflict(
        self, build_service, event_bus, make_class
    ) -> None:
        store = ConflictingStore(event_bus=event_bus, max_attempts=3, retry_delay=0)
        service = await build_service(make_class("c1"), store=store)

        with pytest.raises(ConflictError):
            await service.enroll("c1", "u1", "gold")

    @pytest.mark.asyncio
    async def test_store_failure_raises_store_unavailable(
        self, build_service, event_bus, make_class
    ) -> None:
        store = BrokenStore(event_bus=event_bus)
        service = await build_service(make_class("c1"), store=store)

        with pytest.raises(StoreUnavailableError):
            await service.enroll("c1", "u1", "gold")


class TestEnrollmentServiceUnenroll:
    """Tests for unenroll and the slot-freed notice."""

    @pytest.mark.asyncio
    async def test_unenroll_from_full_class_notifies_once(
        self, build_service, memory_store, make_class
    ) -> None:
        notifier = RecordingNotifier()
        service = await build_service(
            make_class("c1", capacity=1, enrolled=("u1",), title="Morning Spin"),
            notifier=notifier,
        )

        result = await service.unenroll("c1", "u1")

        assert result.record.enrolled_count == 0
        assert result.slot_freed is True
        assert result.notified is True
        assert notifier.calls == [("c1", "Morning Spin")]

        stored = await memory_store.get_class("c1")
        assert stored.enrolled_user_ids == ()

    @pytest.mark.asyncio
    async def test_unenroll_from_open_class_does_not_notify(
        self, build_service, make_class
    ) -> None:
        notifier = RecordingNotifier()
        service = await build_service(
            make_class("c1", capacity=3, enrolled=("u1", "u2")),
            notifier=notifier,
        )

        result = await service.unenroll("c1", "u1")

        assert result.slot_freed is False
        assert result.notified is False
        assert notifier.calls == []

    @pytest.mark.asyncio
    async def test_unenroll_not_enrolled(self, build_service, make_class) -> None:
        service = await build_service(make_class("c1", enrolled=("u1",)))

        with pytest.raises(NotEnrolledError):
            await service.unenroll("c1", "u2")

    @pytest.mark.asyncio
    async def test_unenroll_class_not_found(self, build_service) -> None:
        service = await build_service()

        with pytest.raises(ClassNotFoundError):
            await service.unenroll("missing", "u1")

    @pytest.mark.asyncio
    async def test_notifier_failure_keeps_commit(
        self, build_service, memory_store, make_class
    ) -> None:
        notifier = RecordingNotifier(error=RuntimeError("fcm down"))
        service = await build_service(
            make_class("c1", capacity=1, enrolled=("u1",)),
            notifier=notifier,
        )

        result = await service.unenroll("c1", "u1")

        assert result.slot_freed is True
        assert result.notified is False
        assert len(notifier.calls) == 1
        assert (await memory_store.get_class("c1")).enrolled_count == 0

    @pytest.mark.asyncio
    async def test_notifier_timeout_keeps_commit(
        self, build_service, memory_store, make_class
    ) -> None:
        notifier = RecordingNotifier(delay=1.0)
        service = await build_service(
            make_class("c1", capacity=1, enrolled=("u1",)),
            notifier=notifier,
            dispatch_timeout=0.01,
        )

        result = await service.unenroll("c1", "u1")

        assert result.notified is False
        assert (await memory_store.get_class("c1")).enrolled_count == 0

    @pytest.mark.asyncio
    async def test_skipped_delivery_is_not_notified(self, build_service, make_class) -> None:
        notifier = RecordingNotifier(status=DeliveryStatus.SKIPPED)
        service = await build_service(
            make_class("c1", capacity=1, enrolled=("u1",)),
            notifier=notifier,
        )

        result = await service.unenroll("c1", "u1")

        assert result.slot_freed is True
        assert result.notified is False

    @pytest.mark.asyncio
    async def test_unenroll_without_notifier(self, build_service, make_class) -> None:
        service = await build_service(make_class("c1", capacity=1, enrolled=("u1",)))

        result = await service.unenroll("c1", "u1")

        assert result.slot_freed is True
        assert result.notified is False


class TestEnrollmentServiceQueries:
    """Tests for the advisory queries."""

    @pytest.mark.asyncio
    async def test_is_quota_reached(self, build_service, make_class) -> None:
        service = await build_service(
            make_class("a", date="2024-06-03", enrolled=("u1",)),
            make_class("b", date="2024-06-04", enrolled=("u1",)),
            make_class("c", date="2024-06-05"),
            make_class("open", date=None),
        )

        assert service.is_quota_reached("u1", "bronze", service.cache.get("c")) is True
        assert service.is_quota_reached("u1", "silver", service.cache.get("c")) is False
        assert service.is_quota_reached("u1", "bronze", service.cache.get("open")) is False

    @pytest.mark.asyncio
    async def test_is_quota_reached_excludes_the_class_itself(
        self, build_service, make_class
    ) -> None:
        service = await build_service(
            make_class("a", date="2024-06-03", enrolled=("u1",)),
            make_class("b", date="2024-06-04", enrolled=("u1",)),
        )

        assert service.is_quota_reached("u1", "bronze", service.cache.get("b")) is False
