# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for the enrollment database."""

from src.infrastructure.database.models.base import Base, TimestampMixin
from src.infrastructure.database.models.gym_class import GymClassRow
from src.infrastructure.database.models.user import UserRow

__all__ = [
    "Base",
    "GymClassRow",
    "TimestampMixin",
    "UserRow",
]
