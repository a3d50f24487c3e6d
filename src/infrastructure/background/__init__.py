# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background job infrastructure.

Periodic jobs run in-process on APScheduler's asyncio scheduler.
"""

from src.infrastructure.background.scheduler import JobScheduler, ScheduledJob

__all__ = [
    "JobScheduler",
    "ScheduledJob",
]
