# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event infrastructure.

This package provides:
- EventBus: in-process async pub/sub carrying class change events
- EventTypes: event name constants
- RedisChangeRelay: mirrors class changes between processes over Redis
"""

from src.infrastructure.events.bridge import RedisChangeRelay
from src.infrastructure.events.bus import (
    EventBus,
    EventData,
    EventHandler,
    get_event_bus,
    reset_event_bus,
)
from src.infrastructure.events.types import EventTypes

__all__ = [
    "EventBus",
    "EventData",
    "EventHandler",
    "EventTypes",
    "RedisChangeRelay",
    "get_event_bus",
    "reset_event_bus",
]
