# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Membership tiers and user profiles."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class MembershipTier(str, Enum):
    """Closed set of membership tiers, lowest first."""

    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"

    @classmethod
    def parse(cls, value: Any) -> "MembershipTier":
        """Map arbitrary input to a tier.

        None, unknown strings and non-string values fall back to the
        lowest tier instead of raising.

        Args:
            value: Tier, tier name, or anything else.

        Returns:
            The matching tier, or BRONZE.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.BRONZE


class UserProfile(BaseModel):
    """Read-only view of a member as maintained by the auth subsystem.

    Attributes:
        uid: User identifier.
        email: Contact email.
        membership: Membership tier, bronze when unset or unknown.
        push_tokens: Registered device tokens for push notifications.
        active: Whether the account is enabled.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    uid: str
    email: str = ""
    membership: MembershipTier = MembershipTier.BRONZE
    push_tokens: tuple[str, ...] = ()
    active: bool = True

    @field_validator("membership", mode="before")
    @classmethod
    def default_membership(cls, value: Any) -> MembershipTier:
        """Coerce unknown tiers to bronze."""
        return MembershipTier.parse(value)

    @field_validator("push_tokens", mode="before")
    @classmethod
    def default_push_tokens(cls, value: Any) -> Any:
        """Treat a missing token list as empty."""
        return value or ()
