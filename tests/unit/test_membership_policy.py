# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the membership quota policy."""

import os
from unittest.mock import patch

import pytest

from src.domains.membership.policy import MembershipPolicy, quota_for
from src.models.membership import MembershipTier


class TestMembershipPolicy:
    @pytest.mark.parametrize(
        "tier,quota",
        [
            ("bronze", 2),
            ("silver", 3),
            ("gold", 5),
            (MembershipTier.GOLD, 5),
            (None, 2),
            ("diamond", 2),
        ],
    )
    def test_default_quotas(self, policy: MembershipPolicy, tier, quota: int) -> None:
        assert policy.quota_for(tier) == quota

    def test_missing_tier_rejected(self) -> None:
        with pytest.raises(ValueError, match="silver"):
            MembershipPolicy({MembershipTier.BRONZE: 1, MembershipTier.GOLD: 3})

    def test_negative_quota_rejected(self) -> None:
        with pytest.raises(ValueError):
            MembershipPolicy(
                {
                    MembershipTier.BRONZE: -1,
                    MembershipTier.SILVER: 3,
                    MembershipTier.GOLD: 5,
                }
            )

    def test_module_lookup_follows_settings(self) -> None:
        with patch.dict(os.environ, {"MEMBERSHIP_SILVER_QUOTA": "4"}, clear=False):
            assert quota_for("silver") == 4
