# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health check endpoints.

This module provides health and readiness endpoints for the API.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src import __version__
from src.core.config import get_settings
from src.infrastructure.cache import get_redis, is_redis_initialized
from src.infrastructure.database.connection import get_engine

logger = logging.getLogger(__name__)

router = APIRouter()

# Track server start time for uptime calculation
_server_start_time = time.time()


class ComponentHealth(BaseModel):
    """Individual component health status."""
    status: str = Field(description="Component status")
    latency_ms: float | None = Field(None, description="Response latency in ms")
    message: str | None = Field(None, description="Additional status message")


class ComponentsHealth(BaseModel):
    """All components health status."""
    database: ComponentHealth | None = None
    redis: ComponentHealth | None = None
    class_cache: ComponentHealth | None = None


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(description="Overall health status")
    timestamp: datetime = Field(description="Current server timestamp")
    version: str = Field(description="API version")
    environment: str = Field(description="Deployment environment")
    uptime_seconds: int = Field(description="Server uptime in seconds")
    components: ComponentsHealth = Field(default_factory=ComponentsHealth)


class ReadinessResponse(BaseModel):
    """Readiness check response model."""
    ready: bool = Field(description="Whether the service is ready")
    checks: dict[str, Any] = Field(description="Individual check results")


async def check_database() -> ComponentHealth:
    """Check the class store database connection."""
    try:
        from sqlalchemy import text

        engine = get_engine()
        start = time.time()

        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

        latency = (time.time() - start) * 1000
        return ComponentHealth(status="healthy", latency_ms=round(latency, 2))
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        return ComponentHealth(status="unhealthy", message=str(e))


async def check_redis() -> ComponentHealth | None:
    """Check the Redis change relay connection, None when relaying is off."""
    if not get_settings().redis.enabled:
        return None
    if not is_redis_initialized():
        return ComponentHealth(status="unhealthy", message="Redis not initialized")

    start = time.time()
    if not await get_redis().ping():
        return ComponentHealth(status="unhealthy", message="Ping failed")
    latency = (time.time() - start) * 1000
    return ComponentHealth(status="healthy", latency_ms=round(latency, 2))


def check_class_cache(request: Request) -> ComponentHealth:
    """Report whether the read cache holds a fresh snapshot."""
    cache = getattr(request.app.state, "class_cache", None)
    if cache is None:
        return ComponentHealth(status="unhealthy", message="Class cache not started")
    if cache.loading:
        return ComponentHealth(status="degraded", message="Waiting for first snapshot")
    if cache.error:
        return ComponentHealth(status="degraded", message=cache.error)
    return ComponentHealth(status="healthy", message=f"{len(cache.classes)} classes")


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Check if the API is healthy with component details.

    Returns:
        HealthResponse with detailed status.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    uptime = int(time.time() - _server_start_time)

    db_health = await check_database()
    redis_health = await check_redis()
    cache_health = check_class_cache(request)

    component_statuses = [
        c.status for c in (db_health, redis_health, cache_health) if c is not None
    ]
    if all(s == "healthy" for s in component_statuses):
        overall_status = "healthy"
    elif any(s == "unhealthy" for s in component_statuses):
        overall_status = "unhealthy"
    else:
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        timestamp=now,
        version=__version__,
        environment=settings.environment,
        uptime_seconds=uptime,
        components=ComponentsHealth(
            database=db_health,
            redis=redis_health,
            class_cache=cache_health,
        ),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Check if the API is ready to accept traffic.

    Ready means the database answers and the class cache received its
    first snapshot.

    Returns:
        ReadinessResponse with individual check results.
    """
    checks: dict[str, Any] = {}
    all_ready = True

    db_health = await check_database()
    checks["database"] = {"status": db_health.status, "latency_ms": db_health.latency_ms}
    if db_health.status != "healthy":
        all_ready = False

    cache_health = check_class_cache(request)
    checks["class_cache"] = {"status": cache_health.status, "message": cache_health.message}
    cache = getattr(request.app.state, "class_cache", None)
    if cache is None or cache.loading:
        all_ready = False

    return ReadinessResponse(ready=all_ready, checks=checks)
