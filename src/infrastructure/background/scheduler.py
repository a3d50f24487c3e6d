# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scheduler for periodic in-process jobs.

Uses APScheduler's AsyncIOScheduler so jobs run on the application's
event loop next to the request handlers.

Example:
    from src.infrastructure.background.scheduler import JobScheduler

    scheduler = JobScheduler()

    # Re-sweep started classes every minute
    scheduler.add_interval_job(
        name="Class Auto-Deactivation",
        func=resweep,
        seconds=60,
    )

    await scheduler.start()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from uuid import uuid4

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


@dataclass
class ScheduledJob:
    """Configuration and counters for a periodic job.

    Attributes:
        id: Unique job identifier.
        name: Human-readable job name.
        func: Coroutine function to run.
        seconds: Interval between runs.
        start_immediately: Run once as soon as the scheduler starts.
        last_run: Last run timestamp.
        run_count: Total number of completed runs.
        error_count: Number of failed runs.
    """

    name: str
    func: JobFunc
    seconds: int
    start_immediately: bool = False
    id: str = field(default_factory=lambda: str(uuid4()))
    last_run: datetime | None = None
    run_count: int = 0
    error_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "seconds": self.seconds,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "error_count": self.error_count,
        }


class JobScheduler:
    """Interval job runner on top of APScheduler.

    Jobs may be added before or after start(); jobs added earlier are
    registered when the scheduler starts.

    Attributes:
        _scheduler: APScheduler instance while running.
        _jobs: Registered jobs by id.
        _running: Whether scheduler is running.
    """

    def __init__(self) -> None:
        """Initialize the scheduler."""
        self._scheduler: AsyncIOScheduler | None = None
        self._jobs: dict[str, ScheduledJob] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running

    def add_interval_job(
        self,
        name: str,
        func: JobFunc,
        seconds: int,
        start_immediately: bool = False,
    ) -> ScheduledJob:
        """Add an interval-scheduled job.

        Args:
            name: Job name.
            func: Coroutine function called on every run.
            seconds: Interval seconds.
            start_immediately: Run immediately on start.

        Returns:
            Created ScheduledJob.

        Raises:
            ValueError: If the interval is not positive.
        """
        if seconds <= 0:
            raise ValueError("Interval must be positive")

        job = ScheduledJob(
            name=name,
            func=func,
            seconds=seconds,
            start_immediately=start_immediately,
        )
        self._jobs[job.id] = job

        if self._scheduler is not None:
            self._register(job)

        logger.info("Added interval job: %s (every %ds)", name, seconds)
        return job

    def _register(self, job: ScheduledJob) -> None:
        assert self._scheduler is not None
        self._scheduler.add_job(
            self._execute_job,
            trigger=IntervalTrigger(seconds=job.seconds),
            args=[job.id],
            id=job.id,
            name=job.name,
            next_run_time=datetime.now(timezone.utc) if job.start_immediately else None,
            max_instances=1,
            coalesce=True,
        )

    async def _execute_job(self, job_id: str) -> None:
        """Execute a scheduled job.

        Args:
            job_id: ID of the job to execute.
        """
        job = self._jobs.get(job_id)
        if job is None:
            return

        logger.debug("Executing scheduled job: %s", job.name)

        try:
            await job.func()
            job.last_run = datetime.now(timezone.utc)
            job.run_count += 1
        except Exception as e:
            job.error_count += 1
            logger.error("Scheduled job %s failed: %s", job.name, str(e))

    def remove_job(self, job_id: str) -> bool:
        """Remove a scheduled job.

        Returns:
            True if removed.
        """
        if job_id not in self._jobs:
            return False

        if self._scheduler is not None and self._scheduler.get_job(job_id) is not None:
            self._scheduler.remove_job(job_id)

        del self._jobs[job_id]
        logger.info("Removed scheduled job: %s", job_id)
        return True

    def list_jobs(self) -> list[ScheduledJob]:
        """List all scheduled jobs."""
        return list(self._jobs.values())

    async def start(self) -> None:
        """Start the scheduler on the running event loop."""
        if self._running:
            return

        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        for job in self._jobs.values():
            self._register(job)
        self._scheduler.start()
        self._running = True

        logger.info("Job scheduler started with %d jobs", len(self._jobs))

    async def stop(self) -> None:
        """Stop the scheduler."""
        if not self._running:
            return

        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("Job scheduler stopped")

    def get_stats(self) -> dict[str, Any]:
        """Get scheduler statistics."""
        return {
            "is_running": self._running,
            "job_count": len(self._jobs),
            "total_runs": sum(j.run_count for j in self._jobs.values()),
            "total_errors": sum(j.error_count for j in self._jobs.values()),
            "jobs": [j.to_dict() for j in self._jobs.values()],
        }
