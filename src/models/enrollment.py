# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for the enrollment API."""

from pydantic import BaseModel, Field

from src.models.gym_class import ClassRecord, ClassStatus, OccupancyState
from src.models.membership import MembershipTier


class ErrorDetail(BaseModel):
    """Machine-readable rejection reason."""

    code: str = Field(description="Stable error code, e.g. capacity_reached")
    message: str = Field(description="Human-readable explanation")


class ClassListResponse(BaseModel):
    """Cached schedule listing."""

    items: list[ClassRecord]
    total: int
    loading: bool = Field(description="Cache has not received its first snapshot yet")
    error: str | None = Field(None, description="Last subscription error, if any")


class EnrollmentResponse(BaseModel):
    """Outcome of a committed enrollment."""

    class_id: str
    user_id: str
    enrolled_count: int
    capacity: int
    occupancy: OccupancyState
    status: ClassStatus

    @classmethod
    def from_record(cls, record: ClassRecord, user_id: str) -> "EnrollmentResponse":
        """Build the response from the committed class state."""
        return cls(
            class_id=record.id,
            user_id=user_id,
            enrolled_count=record.enrolled_count,
            capacity=record.capacity,
            occupancy=record.occupancy,
            status=record.status,
        )


class UnenrollmentResponse(EnrollmentResponse):
    """Outcome of a committed unenrollment."""

    slot_freed: bool = Field(description="The class went from full to open")
    notified: bool = Field(description="The slot-freed notification was dispatched")

    @classmethod
    def from_unenroll(
        cls,
        record: ClassRecord,
        user_id: str,
        slot_freed: bool,
        notified: bool,
    ) -> "UnenrollmentResponse":
        """Build the response from the committed class state and side effects."""
        base = EnrollmentResponse.from_record(record, user_id)
        return cls(**base.model_dump(), slot_freed=slot_freed, notified=notified)


class WeeklyCountResponse(BaseModel):
    """A user's bookings within one week."""

    user_id: str
    week_key: str | None
    count: int
    quota: int
    membership: MembershipTier


class QuotaStatusResponse(BaseModel):
    """Whether a user can still book a given class under their quota."""

    class_id: str
    user_id: str
    week_key: str | None
    quota: int
    weekly_count: int
    quota_reached: bool
