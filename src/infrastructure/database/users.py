# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read access to user profiles."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.infrastructure.database.connection import DatabaseError
from src.infrastructure.database.models import UserRow
from src.models.membership import UserProfile

logger = logging.getLogger(__name__)


class UserRepository:
    """Looks up member profiles and their device tokens."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def get_profile(self, uid: str) -> Optional[UserProfile]:
        """Fetch a profile by user id.

        Raises:
            DatabaseError: If the query fails.
        """
        try:
            async with self._sessionmaker() as session:
                row = await session.get(UserRow, uid)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to load user {uid}", e) from e
        return UserProfile.model_validate(row) if row is not None else None

    async def list_push_tokens(self) -> list[str]:
        """Collect the device tokens registered on any user profile, deduplicated.

        Raises:
            DatabaseError: If the query fails.
        """
        try:
            async with self._sessionmaker() as session:
                rows = await session.scalars(select(UserRow.push_tokens))
                token_lists = list(rows)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to load push tokens", e) from e

        tokens: list[str] = []
        seen: set[str] = set()
        for token_list in token_lists:
            for token in token_list or ():
                if token and token not in seen:
                    seen.add(token)
                    tokens.append(token)
        logger.debug("Loaded %d push tokens", len(tokens))
        return tokens
