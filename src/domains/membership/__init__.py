# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Membership domain package.

This package maps membership tiers to weekly booking quotas.
"""

from src.domains.membership.policy import MembershipPolicy, quota_for

__all__ = [
    "MembershipPolicy",
    "quota_for",
]
