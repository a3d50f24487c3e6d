# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer for external service integrations.

This package contains clients and managers for:
- Database connections and the class store (PostgreSQL)
- Cross-process change relay (Redis)
- In-process events
- Periodic jobs (APScheduler)
- Push notifications (Firebase Cloud Messaging)
"""
