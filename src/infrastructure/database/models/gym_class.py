# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class document table."""

import uuid
from typing import Optional

from sqlalchemy import JSON, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, TimestampMixin


class GymClassRow(Base, TimestampMixin):
    """One scheduled session.

    ``version`` is the optimistic concurrency token: every committed write
    is a conditional UPDATE on the version that was read, and bumps it.
    """

    __tablename__ = "classes"
    __table_args__ = (
        Index("ix_classes_schedule", "day_of_week", "start_time"),
        Index("ix_classes_date", "date"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    coach: Mapped[str] = mapped_column(String(120), default="", nullable=False)
    day_of_week: Mapped[str] = mapped_column(String(16), default="", nullable=False)
    date: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    start_time: Mapped[str] = mapped_column(String(5), default="", nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), default="", nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)
    enrolled_user_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    enrolled_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<GymClassRow {self.id} {self.title!r} v{self.version}>"
