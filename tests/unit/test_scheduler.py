# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the interval job scheduler."""

import asyncio

import pytest

from src.infrastructure.background.scheduler import JobScheduler


class TestJobScheduler:
    """Tests for JobScheduler."""

    def test_add_interval_job(self) -> None:
        scheduler = JobScheduler()

        async def job() -> None:
            return None

        scheduled = scheduler.add_interval_job(name="Sweep", func=job, seconds=30)

        assert scheduler.list_jobs() == [scheduled]
        assert scheduled.to_dict()["seconds"] == 30
        assert scheduled.to_dict()["last_run"] is None

    def test_interval_must_be_positive(self) -> None:
        scheduler = JobScheduler()

        async def job() -> None:
            return None

        with pytest.raises(ValueError):
            scheduler.add_interval_job(name="Sweep", func=job, seconds=0)

    def test_remove_job(self) -> None:
        scheduler = JobScheduler()

        async def job() -> None:
            return None

        scheduled = scheduler.add_interval_job(name="Sweep", func=job, seconds=30)

        assert scheduler.remove_job(scheduled.id) is True
        assert scheduler.remove_job(scheduled.id) is False
        assert scheduler.list_jobs() == []

    @pytest.mark.asyncio
    async def test_execute_job_counts_runs_and_errors(self) -> None:
        scheduler = JobScheduler()
        runs = 0

        async def flaky() -> None:
            nonlocal runs
            runs += 1
            if runs == 2:
                raise RuntimeError("store offline")

        scheduled = scheduler.add_interval_job(name="Sweep", func=flaky, seconds=30)

        await scheduler._execute_job(scheduled.id)
        await scheduler._execute_job(scheduled.id)
        await scheduler._execute_job("unknown")

        assert scheduled.run_count == 1
        assert scheduled.error_count == 1
        assert scheduled.last_run is not None
        stats = scheduler.get_stats()
        assert stats["total_runs"] == 1
        assert stats["total_errors"] == 1

    @pytest.mark.asyncio
    async def test_start_runs_immediate_jobs(self) -> None:
        scheduler = JobScheduler()
        ran = asyncio.Event()

        async def job() -> None:
            ran.set()

        scheduler.add_interval_job(name="Sweep", func=job, seconds=3600, start_immediately=True)
        await scheduler.start()
        try:
            assert scheduler.is_running is True
            await asyncio.wait_for(ran.wait(), timeout=2.0)
        finally:
            await scheduler.stop()

        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_jobs_added_while_running_are_registered(self) -> None:
        scheduler = JobScheduler()
        ran = asyncio.Event()

        async def job() -> None:
            ran.set()

        await scheduler.start()
        try:
            scheduler.add_interval_job(name="Late", func=job, seconds=3600, start_immediately=True)
            await asyncio.wait_for(ran.wait(), timeout=2.0)
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self) -> None:
        scheduler = JobScheduler()

        await scheduler.stop()
        await scheduler.start()
        await scheduler.start()
        await scheduler.stop()
        await scheduler.stop()

        assert scheduler.is_running is False
