# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class schedule domain: read cache and auto-deactivation."""

from src.domains.schedule.cache import ClassReadCache
from src.domains.schedule.sweeper import AutoDeactivationSweeper, SweepResult

__all__ = [
    "AutoDeactivationSweeper",
    "ClassReadCache",
    "SweepResult",
]
