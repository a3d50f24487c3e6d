# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class schedule and booking API endpoints.

This module provides endpoints for members:
- GET / - List the cached schedule
- POST /{class_id}/enrollment - Book a slot
- DELETE /{class_id}/enrollment - Release a slot
- GET /{class_id}/quota - Check the weekly quota against a class

Listings and quota checks are served from the read cache. Bookings and
releases always go through a store transaction.
"""

import logging
from typing import Literal

from fastapi import APIRouter, Query, status

from src.api.dependencies import Cache, CurrentUser, Enrollment
from src.api.v1.errors import to_http_exception
from src.domains.enrollment.exceptions import ClassNotFoundError, EnrollmentServiceError
from src.models.enrollment import (
    ClassListResponse,
    EnrollmentResponse,
    QuotaStatusResponse,
    UnenrollmentResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=ClassListResponse,
    summary="List classes",
    description="Schedule ordered by day of week and start time.",
)
async def list_classes(
    cache: Cache,
    current_user: CurrentUser,
    period: Literal["morning", "afternoon"] | None = Query(
        None, description="Only classes starting before or after noon"
    ),
) -> ClassListResponse:
    """List the cached class schedule."""
    if period == "morning":
        items = cache.morning_classes
    elif period == "afternoon":
        items = cache.afternoon_classes
    else:
        items = list(cache.classes)

    return ClassListResponse(
        items=items,
        total=len(items),
        loading=cache.loading,
        error=cache.error,
    )


@router.post(
    "/{class_id}/enrollment",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in class",
    description="Book a slot in a class for the calling member.",
)
async def enroll(
    class_id: str,
    service: Enrollment,
    current_user: CurrentUser,
) -> EnrollmentResponse:
    """Book a slot for the calling member.

    Raises:
        HTTPException: 404 unknown class, 409 when the class is full,
            inactive, already booked or contended, 403 when the weekly
            quota is used up, 503 when the store is down.
    """
    logger.info("Enrolling: user=%s, class=%s", current_user.uid, class_id)

    try:
        record = await service.enroll(class_id, current_user.uid, current_user.membership)
    except EnrollmentServiceError as e:
        logger.info("Enrollment rejected: user=%s, class=%s, code=%s", current_user.uid, class_id, e.code)
        raise to_http_exception(e) from e

    return EnrollmentResponse.from_record(record, current_user.uid)


@router.delete(
    "/{class_id}/enrollment",
    response_model=UnenrollmentResponse,
    summary="Unenroll from class",
    description="Release the calling member's slot in a class.",
)
async def unenroll(
    class_id: str,
    service: Enrollment,
    current_user: CurrentUser,
) -> UnenrollmentResponse:
    """Release the calling member's slot.

    Raises:
        HTTPException: 404 unknown class or no booking, 409 contended,
            503 when the store is down.
    """
    logger.info("Unenrolling: user=%s, class=%s", current_user.uid, class_id)

    try:
        result = await service.unenroll(class_id, current_user.uid)
    except EnrollmentServiceError as e:
        raise to_http_exception(e) from e

    return UnenrollmentResponse.from_unenroll(
        result.record,
        current_user.uid,
        slot_freed=result.slot_freed,
        notified=result.notified,
    )


@router.get(
    "/{class_id}/quota",
    response_model=QuotaStatusResponse,
    summary="Check weekly quota",
    description="Whether booking this class would exceed the member's weekly quota.",
)
async def quota_status(
    class_id: str,
    cache: Cache,
    service: Enrollment,
    current_user: CurrentUser,
) -> QuotaStatusResponse:
    """Advisory quota check for a class."""
    record = cache.get(class_id)
    if record is None:
        raise to_http_exception(ClassNotFoundError(f"Class {class_id} not found", class_id))

    return QuotaStatusResponse(
        class_id=class_id,
        user_id=current_user.uid,
        week_key=record.week_key,
        quota=service.policy.quota_for(current_user.membership),
        weekly_count=service.weekly_enrollment_count(
            current_user.uid, record.week_key, exclude_class_id=class_id
        ),
        quota_reached=service.is_quota_reached(current_user.uid, current_user.membership, record),
    )
