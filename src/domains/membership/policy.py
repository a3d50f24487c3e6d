# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Membership policy: weekly booking quota per tier.

The quota table comes from MembershipSettings so it can be tuned through
the environment (MEMBERSHIP_BRONZE_QUOTA, ...) without touching the
enrollment engine.

Example:
    >>> policy = MembershipPolicy.from_settings(get_settings().membership)
    >>> policy.quota_for("gold")
    5
    >>> policy.quota_for(None)
    2
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from src.core.config.settings import MembershipSettings, get_settings
from src.models.membership import MembershipTier


class MembershipPolicy:
    """Maps membership tiers to a maximum number of bookings per week.

    Attributes:
        quotas: Complete tier -> quota table.
    """

    def __init__(self, quotas: Mapping[MembershipTier, int]) -> None:
        """Initialize the policy.

        Args:
            quotas: Quota for every tier.

        Raises:
            ValueError: If a tier is missing or a quota is negative.
        """
        missing = [tier.value for tier in MembershipTier if tier not in quotas]
        if missing:
            raise ValueError(f"Missing quota for tiers: {', '.join(missing)}")
        if any(quota < 0 for quota in quotas.values()):
            raise ValueError("Quotas must not be negative")
        self.quotas: dict[MembershipTier, int] = dict(quotas)

    @classmethod
    def from_settings(cls, settings: MembershipSettings) -> "MembershipPolicy":
        """Build the policy from configuration."""
        return cls(
            {
                MembershipTier.BRONZE: settings.bronze_quota,
                MembershipTier.SILVER: settings.silver_quota,
                MembershipTier.GOLD: settings.gold_quota,
            }
        )

    def quota_for(self, tier: MembershipTier | str | None) -> int:
        """Return the weekly booking quota for a tier.

        Unknown or absent tiers get the lowest tier's quota.
        """
        return self.quotas[MembershipTier.parse(tier)]


def quota_for(tier: Any) -> int:
    """Quota lookup against the configured default policy."""
    return MembershipPolicy.from_settings(get_settings().membership).quota_for(tier)
