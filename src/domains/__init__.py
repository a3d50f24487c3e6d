# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the Vitbox enrollment backend.

This package contains domain services that encapsulate business logic.

Domains:
    enrollment: Booking and releasing class slots.
    membership: Weekly quotas per membership tier.
    schedule: Live class cache and auto-deactivation sweeper.
"""
