# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests
"""

from collections.abc import Callable, Generator
from typing import Any

import pytest

from src.core.config.settings import MembershipSettings, clear_settings_cache
from src.domains.membership.policy import MembershipPolicy
from src.infrastructure.database.memory_store import InMemoryClassStore
from src.infrastructure.events.bus import EventBus, reset_event_bus
from src.models.gym_class import ClassRecord, ClassStatus

# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Drop cached settings and the shared event bus around every test."""
    clear_settings_cache()
    reset_event_bus()
    yield
    clear_settings_cache()
    reset_event_bus()


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def make_class() -> Callable[..., ClassRecord]:
    """Factory for class records.

    Defaults to an active Wednesday morning class on 2030-06-05 with ten slots.
    """

    def _make(
        class_id: str,
        *,
        capacity: int = 10,
        date: str | None = "2030-06-05",
        start_time: str = "07:00",
        enrolled: tuple[str, ...] = (),
        status: ClassStatus = ClassStatus.ACTIVE,
        day_of_week: str = "3-Wednesday",
        title: str | None = None,
        **extra: Any,
    ) -> ClassRecord:
        return ClassRecord(
            id=class_id,
            title=title or f"Class {class_id}",
            coach="Sam",
            day_of_week=day_of_week,
            date=date,
            start_time=start_time,
            end_time="08:00",
            capacity=capacity,
            status=status,
            enrolled_user_ids=enrolled,
            enrolled_count=len(enrolled),
            **extra,
        )

    return _make


@pytest.fixture
def event_bus() -> EventBus:
    """Provide a fresh event bus."""
    return EventBus()


@pytest.fixture
def memory_store(event_bus: EventBus) -> InMemoryClassStore:
    """Provide an empty in-memory class store without retry back-off."""
    return InMemoryClassStore(event_bus=event_bus, retry_delay=0)


@pytest.fixture
def policy() -> MembershipPolicy:
    """Default quota table: bronze 2, silver 3, gold 5."""
    return MembershipPolicy.from_settings(MembershipSettings())
