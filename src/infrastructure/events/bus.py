# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-process change notifications for class documents.

The class store publishes ``classes.changed`` after every committed write.
Class subscriptions and the Redis relay listen for it. Event types are
matched exactly.

Example:
    from src.infrastructure.events import EventBus, EventTypes

    event_bus = EventBus()

    async def on_change(event):
        await cache.reload(event.payload["class_id"])

    event_bus.subscribe(EventTypes.Classes.CHANGED, on_change)
    await event_bus.publish(EventTypes.Classes.CHANGED, {"class_id": "abc"})
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

EventHandler = Callable[["EventData"], Awaitable[None]]


@dataclass
class EventData:
    """A published change.

    Attributes:
        event_type: The event type string.
        payload: Change details, e.g. ``class_id`` and ``reason``.
        published_at: When the event was published.
    """

    event_type: str
    payload: dict[str, Any]
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EventBus:
    """Fan-out of change events to async handlers.

    Meant for a single event loop. Changes made by other processes reach
    this bus through RedisChangeRelay.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug("Subscribed handler to: %s", event_type)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """Remove one registration of ``handler``.

        Returns:
            True if the handler was registered for ``event_type``.
        """
        handlers = self._handlers.get(event_type, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._handlers[event_type]
        return True

    def handler_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, []))

    async def publish(self, event_type: str, payload: dict[str, Any]) -> EventData:
        """Deliver an event to every handler of its type.

        Handlers run concurrently. A failing handler is logged and does
        not affect the others or the publisher.
        """
        event = EventData(event_type=event_type, payload=payload)
        handlers = list(self._handlers.get(event_type, []))
        if not handlers:
            return event

        async def deliver(handler: EventHandler) -> None:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Handler error for event %s: %s", event_type, str(e), exc_info=True
                )

        await asyncio.gather(*[deliver(handler) for handler in handlers])
        return event

    def clear(self) -> None:
        self._handlers.clear()


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the process-wide event bus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Drop the process-wide bus and its subscriptions."""
    global _event_bus
    if _event_bus is not None:
        _event_bus.clear()
    _event_bus = None
