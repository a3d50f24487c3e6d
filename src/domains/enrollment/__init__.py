# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment domain: booking rules and the transactional engine."""

from src.domains.enrollment.decision import (
    EnrollmentDecision,
    decide_enroll,
    decide_unenroll,
)
from src.domains.enrollment.exceptions import (
    AlreadyEnrolledError,
    CapacityReachedError,
    ClassNotFoundError,
    ClassUnavailableError,
    ConflictError,
    EnrollmentServiceError,
    NotEnrolledError,
    QuotaExceededError,
    StoreUnavailableError,
)
from src.domains.enrollment.service import EnrollmentService, UnenrollResult

__all__ = [
    "AlreadyEnrolledError",
    "CapacityReachedError",
    "ClassNotFoundError",
    "ClassUnavailableError",
    "ConflictError",
    "EnrollmentDecision",
    "EnrollmentService",
    "EnrollmentServiceError",
    "NotEnrolledError",
    "QuotaExceededError",
    "StoreUnavailableError",
    "UnenrollResult",
    "decide_enroll",
    "decide_unenroll",
]
