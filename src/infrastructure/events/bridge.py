# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""EventBus-to-Redis bridge for class changes.

Each API process keeps its own EventBus and class read cache. This bridge
makes a write committed in one process refresh the caches of all others.

Architecture:
    Store commit → EventBus → Relay → Redis channel → Relay (other process)
    → EventBus → ClassSubscription reload → ClassReadCache

The relay:
- Forwards locally originated classes.changed events to Redis
- Republishes events received from Redis onto the local EventBus,
  marked as relayed so they are not forwarded again
- Ignores messages carrying its own origin id

Example:
    relay = RedisChangeRelay(get_redis(), event_bus, channel, origin=store.origin)
    await relay.start()
    ...
    await relay.stop()
"""

import asyncio
import json
import logging
from typing import Any

from src.infrastructure.cache.redis_client import RedisClient, RedisError
from src.infrastructure.events.bus import EventBus, EventData
from src.infrastructure.events.types import EventTypes

logger = logging.getLogger(__name__)


class RedisChangeRelay:
    """Bridge that mirrors class change events over Redis pub/sub.

    Attributes:
        _redis: Connected Redis client.
        _event_bus: Local EventBus.
        _channel: Redis channel name.
        _origin: Identifier of this process's store.
        _running: Whether the relay is active.
    """

    def __init__(
        self,
        redis: RedisClient,
        event_bus: EventBus,
        channel: str,
        origin: str,
    ) -> None:
        """Initialize the relay."""
        self._redis = redis
        self._event_bus = event_bus
        self._channel = channel
        self._origin = origin
        self._running = False
        self._listener: asyncio.Task[None] | None = None
        self._events_forwarded = 0
        self._events_received = 0
        self._errors = 0

    @property
    def is_running(self) -> bool:
        """Check if relay is running."""
        return self._running

    async def start(self) -> None:
        """Subscribe to the local bus and start listening on Redis."""
        if self._running:
            logger.warning("Change relay already running")
            return

        pubsub = await self._redis.subscribe(self._channel)

        self._event_bus.subscribe(EventTypes.Classes.CHANGED, self._on_local_change)
        self._listener = asyncio.create_task(self._listen(pubsub))
        self._running = True
        logger.info("Change relay started on channel %s", self._channel)

    async def stop(self) -> None:
        """Stop forwarding and listening."""
        if not self._running:
            return

        self._event_bus.unsubscribe(EventTypes.Classes.CHANGED, self._on_local_change)
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        self._running = False
        logger.info(
            "Change relay stopped (forwarded=%d, received=%d, errors=%d)",
            self._events_forwarded,
            self._events_received,
            self._errors,
        )

    async def _on_local_change(self, event: EventData) -> None:
        """Forward a locally published change to Redis."""
        if event.payload.get("relayed"):
            return

        try:
            await self._redis.publish_json(
                self._channel, {**event.payload, "origin": self._origin}
            )
            self._events_forwarded += 1
        except RedisError as e:
            self._errors += 1
            logger.warning("Failed to relay class change: %s", str(e))

    async def _listen(self, pubsub: Any) -> None:
        """Republish remote changes on the local bus until cancelled."""
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                await self._handle_remote(message.get("data"))
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()

    async def _handle_remote(self, data: Any) -> None:
        """Decode one Redis message and publish it locally."""
        try:
            payload = json.loads(data)
        except (TypeError, ValueError):
            self._errors += 1
            logger.warning("Discarding malformed change message: %r", data)
            return

        if payload.get("origin") == self._origin:
            return

        self._events_received += 1
        await self._event_bus.publish(
            EventTypes.Classes.CHANGED,
            {**payload, "relayed": True},
        )

    def get_stats(self) -> dict[str, Any]:
        """Get relay statistics."""
        return {
            "running": self._running,
            "channel": self._channel,
            "events_forwarded": self._events_forwarded,
            "events_received": self._events_received,
            "errors": self._errors,
        }
