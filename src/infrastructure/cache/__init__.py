# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Redis infrastructure.

This package provides the Redis client used to relay class changes
between processes.

Example:
    from src.infrastructure.cache import init_redis, get_redis

    # Initialize at application startup
    await init_redis(settings)

    redis = get_redis()
    await redis.publish_json("vitbox:classes:changed", {"class_id": "c1"})

    # Cleanup at shutdown
    await close_redis()
"""

from src.infrastructure.cache.redis_client import (
    RedisClient,
    RedisError,
    close_redis,
    get_redis,
    init_redis,
    is_redis_initialized,
)

__all__ = [
    "RedisClient",
    "RedisError",
    "close_redis",
    "get_redis",
    "init_redis",
    "is_redis_initialized",
]
