# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for the Vitbox enrollment backend.

Example:
    >>> from src.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from src.core.config.settings import (
    APISettings,
    CORSSettings,
    DatabaseSettings,
    EnrollmentSettings,
    MembershipSettings,
    PushSettings,
    RedisSettings,
    ScheduleSettings,
    Settings,
    SweeperSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "DatabaseSettings",
    "RedisSettings",
    "MembershipSettings",
    "EnrollmentSettings",
    "ScheduleSettings",
    "SweeperSettings",
    "PushSettings",
    "CORSSettings",
    "APISettings",
]
