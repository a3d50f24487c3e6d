"""Vitbox Enrollment Backend.

Gym class booking service: capacity-bounded enrollment, membership-tiered
weekly quotas and slot-freed notifications over an optimistic store.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
