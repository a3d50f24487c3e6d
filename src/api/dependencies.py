# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get the components wired up by the application lifespan
- Resolve the calling member from the auth gateway header

The lifespan stores its components on ``app.state``; a missing
component answers 503 until startup completes.

Example:
    @router.get("/classes")
    async def list_classes(
        cache: ClassReadCache = Depends(get_class_cache),
        current_user: UserProfile = Depends(get_current_user),
    ):
        ...
"""

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from src.domains.enrollment.service import EnrollmentService
from src.domains.schedule.cache import ClassReadCache
from src.infrastructure.database.connection import DatabaseError
from src.infrastructure.database.users import UserRepository
from src.models.membership import UserProfile
from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)


def _from_state(request: Request, name: str) -> object:
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "not_ready", "message": "Service is starting up"},
        )
    return component


def get_class_cache(request: Request) -> ClassReadCache:
    """Get the class read cache."""
    return _from_state(request, "class_cache")  # type: ignore[return-value]


def get_enrollment_service(request: Request) -> EnrollmentService:
    """Get the enrollment service."""
    return _from_state(request, "enrollment_service")  # type: ignore[return-value]


def get_user_repository(request: Request) -> UserRepository:
    """Get the user profile repository."""
    return _from_state(request, "user_repository")  # type: ignore[return-value]


async def get_current_user(
    users: Annotated[UserRepository, Depends(get_user_repository)],
    x_user_id: Annotated[str | None, Header()] = None,
) -> UserProfile:
    """Resolve the calling member.

    The auth gateway authenticates the request and forwards the user id
    in the ``X-User-Id`` header.

    Raises:
        HTTPException: 401 if the header is missing or the user is
            unknown, 403 if the account is disabled, 503 if profiles
            cannot be read.
    """
    clear_context()
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": "Missing X-User-Id header"},
        )

    try:
        profile = await users.get_profile(x_user_id)
    except DatabaseError as e:
        logger.error("Failed to load user %s: %s", x_user_id, str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "store_unavailable", "message": "User profiles are unavailable"},
        ) from e

    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unknown_user", "message": "User not found"},
        )
    if not profile.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "user_disabled", "message": "User account is disabled"},
        )
    bind_context(user_id=profile.uid, membership=profile.membership.value)
    return profile


CurrentUser = Annotated[UserProfile, Depends(get_current_user)]
Cache = Annotated[ClassReadCache, Depends(get_class_cache)]
Enrollment = Annotated[EnrollmentService, Depends(get_enrollment_service)]
