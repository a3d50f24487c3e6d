# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""User profile table.

Rows are owned by the authentication subsystem. The enrollment backend
only reads membership and push tokens from it.
"""

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, TimestampMixin


class UserRow(Base, TimestampMixin):
    """Member profile."""

    __tablename__ = "users"

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    membership: Mapped[str] = mapped_column(String(16), default="bronze", nullable=False)
    push_tokens: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
