# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Member booking summary endpoints."""

from fastapi import APIRouter, Query

from src.api.dependencies import CurrentUser, Enrollment
from src.models.enrollment import WeeklyCountResponse
from src.utils.datetime import week_key_of

router = APIRouter()


@router.get(
    "/weekly-count",
    response_model=WeeklyCountResponse,
    summary="Weekly booking count",
    description="Number of classes the member booked in the week containing a date.",
)
async def weekly_count(
    service: Enrollment,
    current_user: CurrentUser,
    date: str = Query(..., description="Any date of the week (YYYY-MM-DD)"),
) -> WeeklyCountResponse:
    """Count the calling member's bookings in a week.

    An unparseable date yields no week and a count of zero.
    """
    week_key = week_key_of(date)
    return WeeklyCountResponse(
        user_id=current_user.uid,
        week_key=week_key,
        count=service.weekly_enrollment_count(current_user.uid, week_key),
        quota=service.policy.quota_for(current_user.membership),
        membership=current_user.membership,
    )
