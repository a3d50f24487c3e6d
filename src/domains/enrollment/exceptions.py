# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment rejection reasons.

Every error carries a stable ``code`` that the API returns to clients.
"""


class EnrollmentServiceError(Exception):
    """Base exception for enrollment service errors."""

    code = "enrollment_error"

    def __init__(self, message: str, class_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.class_id = class_id


class ClassNotFoundError(EnrollmentServiceError):
    """Raised when the class does not exist."""

    code = "class_not_found"


class ClassUnavailableError(EnrollmentServiceError):
    """Raised when the class is no longer accepting bookings."""

    code = "class_unavailable"


class AlreadyEnrolledError(EnrollmentServiceError):
    """Raised when the user already holds a slot in the class."""

    code = "already_enrolled"


class NotEnrolledError(EnrollmentServiceError):
    """Raised when the user does not hold a slot in the class."""

    code = "not_enrolled"


class CapacityReachedError(EnrollmentServiceError):
    """Raised when the class is full."""

    code = "capacity_reached"


class QuotaExceededError(EnrollmentServiceError):
    """Raised when the user has used up the weekly quota of their tier."""

    code = "quota_exceeded"

    def __init__(
        self,
        message: str,
        class_id: str | None = None,
        quota: int = 0,
        weekly_count: int = 0,
    ) -> None:
        super().__init__(message, class_id)
        self.quota = quota
        self.weekly_count = weekly_count


class ConflictError(EnrollmentServiceError):
    """Raised when concurrent writers kept winning every retry."""

    code = "conflict"


class StoreUnavailableError(EnrollmentServiceError):
    """Raised when the class store cannot be reached."""

    code = "store_unavailable"
