# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the main application factory for the Vitbox
enrollment API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src import __version__
from src.api.routes import health
from src.api.v1 import router as v1_router
from src.core.config import get_settings
from src.domains.enrollment.service import EnrollmentService
from src.domains.membership.policy import MembershipPolicy
from src.domains.schedule.cache import ClassReadCache
from src.domains.schedule.sweeper import AutoDeactivationSweeper
from src.infrastructure.background import JobScheduler
from src.infrastructure.cache import close_redis, get_redis, init_redis
from src.infrastructure.database import (
    SqlAlchemyClassStore,
    UserRepository,
    close_database,
    create_schema,
    get_sessionmaker,
    init_database,
)
from src.infrastructure.events import RedisChangeRelay, get_event_bus
from src.infrastructure.notifications import PushChannel, PushSlotNotifier
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events for the application.
    Initializes and cleans up:
    - Database connection and class store
    - Redis change relay (when enabled)
    - Class read cache and auto-deactivation sweeper
    - APScheduler job re-sweeping started classes
    - Push notifier and enrollment service

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings = get_settings()
    logger.info(
        "Starting Vitbox enrollment API",
        extra={"environment": settings.environment, "debug": settings.debug},
    )

    # =========================================================================
    # Startup
    # =========================================================================

    await init_database(settings)
    await create_schema()
    logger.info("Database connection initialized")

    event_bus = get_event_bus()
    store = SqlAlchemyClassStore(
        get_sessionmaker(),
        event_bus,
        max_attempts=settings.enrollment.transaction_max_attempts,
        retry_delay=settings.enrollment.transaction_retry_delay,
    )

    # Relay class changes between API processes
    relay: RedisChangeRelay | None = None
    if settings.redis.enabled:
        try:
            await init_redis(settings)
            relay = RedisChangeRelay(
                get_redis(),
                event_bus,
                settings.redis.changes_channel,
                origin=store.origin,
            )
            await relay.start()
            logger.info("Redis change relay started")
        except Exception as e:
            relay = None
            logger.warning("Failed to start Redis change relay: %s", str(e))

    sweeper: AutoDeactivationSweeper | None = None
    if settings.sweeper.enabled:
        sweeper = AutoDeactivationSweeper(store, tz=settings.schedule.tzinfo)

    cache = ClassReadCache(sweeper=sweeper)
    await cache.start(store.subscribe())
    logger.info("Class cache started with %d classes", len(cache.classes))

    users = UserRepository(get_sessionmaker())
    notifier = PushSlotNotifier(PushChannel(settings.push), users)
    service = EnrollmentService(
        store,
        cache,
        MembershipPolicy.from_settings(settings.membership),
        notifier,
        dispatch_timeout=settings.push.dispatch_timeout,
    )

    # Time passing changes nothing in the store, so re-sweep periodically
    scheduler = JobScheduler()
    if sweeper is not None:

        async def resweep() -> None:
            task = cache.schedule_sweep()
            if task is not None:
                await task

        scheduler.add_interval_job(
            name="Class Auto-Deactivation",
            func=resweep,
            seconds=settings.sweeper.interval_seconds,
        )
    await scheduler.start()

    app.state.class_store = store
    app.state.class_cache = cache
    app.state.user_repository = users
    app.state.enrollment_service = service

    yield

    # =========================================================================
    # Shutdown
    # =========================================================================

    # Stop scheduler first (it may trigger writes)
    try:
        await scheduler.stop()
        logger.info("Scheduler stopped")
    except Exception as e:
        logger.warning("Error stopping scheduler: %s", str(e))

    try:
        await cache.stop()
        logger.info("Class cache stopped")
    except Exception as e:
        logger.warning("Error stopping class cache: %s", str(e))

    if relay is not None:
        try:
            await relay.stop()
        except Exception as e:
            logger.warning("Error stopping change relay: %s", str(e))

    try:
        await close_redis()
    except Exception as e:
        logger.warning("Error closing Redis: %s", str(e))

    try:
        await close_database()
        logger.info("Database connection closed")
    except Exception as e:
        logger.warning("Error closing database connection: %s", str(e))

    logger.info("Shutting down Vitbox enrollment API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="Vitbox Enrollment API",
        description="Gym class booking with capacity and weekly quota enforcement",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app


def run() -> None:
    """Serve the application with uvicorn using API settings."""
    settings = get_settings()
    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=settings.api.host,
        port=settings.api.port,
        workers=settings.api.workers,
        reload=settings.api.reload,
        log_config=None,
    )
