# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP mapping of enrollment errors."""

from fastapi import HTTPException, status

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

_STATUS_BY_ERROR: dict[type[EnrollmentServiceError], int] = {
    ClassNotFoundError: status.HTTP_404_NOT_FOUND,
    NotEnrolledError: status.HTTP_404_NOT_FOUND,
    AlreadyEnrolledError: status.HTTP_409_CONFLICT,
    CapacityReachedError: status.HTTP_409_CONFLICT,
    ClassUnavailableError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
    QuotaExceededError: status.HTTP_403_FORBIDDEN,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http_exception(error: EnrollmentServiceError) -> HTTPException:
    """Translate a service error into an HTTPException.

    The body detail is ``{"code": ..., "message": ...}``.
    """
    return HTTPException(
        status_code=_STATUS_BY_ERROR.get(type(error), status.HTTP_400_BAD_REQUEST),
        detail={"code": error.code, "message": error.message},
    )
