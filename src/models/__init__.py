# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic models shared across domains and the API."""

from src.models.gym_class import (
    ClassRecord,
    ClassStatus,
    InvalidStatusTransitionError,
    OccupancyState,
    count_week_bookings,
)
from src.models.membership import MembershipTier, UserProfile

__all__ = [
    "ClassRecord",
    "ClassStatus",
    "InvalidStatusTransitionError",
    "OccupancyState",
    "count_week_bookings",
    "MembershipTier",
    "UserProfile",
]
