# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Redis client for the cross-process class change feed.

The enrollment backend only needs Redis for pub/sub: every API process
publishes its committed class changes on one channel and listens for the
changes of the others. Nothing is cached in Redis.

Example:
    from src.infrastructure.cache import init_redis, get_redis

    await init_redis(settings)

    redis = get_redis()
    await redis.publish_json("vitbox:classes:changed", {"class_id": "c1"})
    pubsub = await redis.subscribe("vitbox:classes:changed")
"""

import json
import logging
from typing import TYPE_CHECKING, Any, Optional

from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError as BaseRedisError

if TYPE_CHECKING:
    from src.core.config.settings import RedisSettings, Settings

logger = logging.getLogger(__name__)

_redis_client: Optional["RedisClient"] = None


class RedisError(Exception):
    """Raised when a Redis operation fails.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying redis-py error, if any.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class RedisClient:
    """Pooled async Redis connection exposing the pub/sub calls the
    change relay uses.

    Messages are JSON text; the pool decodes responses to ``str``.
    """

    def __init__(self, settings: "RedisSettings") -> None:
        self._settings = settings
        self._pool: Optional[ConnectionPool] = None
        self._redis: Optional[Redis] = None

    @property
    def is_connected(self) -> bool:
        return self._redis is not None

    async def connect(self) -> None:
        """Create the pool and verify the server answers.

        Raises:
            RedisError: If the server cannot be reached.
        """
        pool = ConnectionPool.from_url(
            self._settings.url,
            max_connections=self._settings.max_connections,
            decode_responses=True,
        )
        redis = Redis(connection_pool=pool)
        try:
            await redis.ping()
        except BaseRedisError as e:
            await redis.aclose()
            await pool.disconnect()
            raise RedisError(
                f"Failed to connect to Redis at {self._settings.host}:{self._settings.port}", e
            ) from e

        self._pool = pool
        self._redis = redis
        logger.info("Connected to Redis at %s:%d", self._settings.host, self._settings.port)

    async def close(self) -> None:
        """Close the connection and its pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None

    def _ensure_connected(self) -> Redis:
        if self._redis is None:
            raise RedisError("Redis client not connected. Call connect() first.")
        return self._redis

    # ========== Pub/Sub ==========

    async def publish_json(self, channel: str, payload: dict[str, Any]) -> int:
        """Serialize a payload to JSON and publish it.

        Args:
            channel: Target channel.
            payload: JSON-serializable mapping. Non-JSON values such as
                datetimes are written with ``str()``.

        Returns:
            Number of subscribers that received the message.

        Raises:
            RedisError: If not connected or the publish fails.
        """
        redis = self._ensure_connected()
        message = json.dumps(payload, ensure_ascii=False, default=str)
        try:
            return await redis.publish(channel, message)
        except BaseRedisError as e:
            raise RedisError(f"Failed to publish to channel: {channel}", e) from e

    async def subscribe(self, channel: str) -> PubSub:
        """Open a pub/sub handle already subscribed to ``channel``.

        Subscribe confirmations are filtered out, so ``listen()`` yields
        only messages. The caller owns the handle and must ``aclose()`` it.

        Raises:
            RedisError: If not connected or the subscribe fails.
        """
        pubsub = self._ensure_connected().pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(channel)
        except BaseRedisError as e:
            await pubsub.aclose()
            raise RedisError(f"Failed to subscribe to channel: {channel}", e) from e
        return pubsub

    async def ping(self) -> bool:
        """Whether Redis answers a PING."""
        try:
            await self._ensure_connected().ping()
        except (RedisError, BaseRedisError):
            return False
        return True


# ========== Module-level functions ==========


async def init_redis(settings: "Settings") -> None:
    """Connect the process-wide client.

    Raises:
        RedisError: If the server cannot be reached.
    """
    global _redis_client

    client = RedisClient(settings.redis)
    await client.connect()
    _redis_client = client


async def close_redis() -> None:
    """Close the process-wide client, if any."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.close()
        _redis_client = None


def get_redis() -> RedisClient:
    """Get the process-wide client.

    Raises:
        RedisError: If init_redis() has not run.
    """
    if _redis_client is None:
        raise RedisError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def is_redis_initialized() -> bool:
    """Check whether init_redis() has run."""
    return _redis_client is not None
