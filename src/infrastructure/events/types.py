# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Centralized event type definitions.

Using constants instead of string literals provides a single source of
truth for event names shared by publishers, subscribers and the Redis relay.
"""


class EventTypes:
    """All event types organized by domain."""

    class Classes:
        """Class collection events.

        CHANGED payload:
            class_id: Identifier of the written class document.
            reason: "transaction" or "status".
            origin: Identifier of the publishing process.
            relayed: Present and True when the event arrived over Redis.
        """

        CHANGED = "classes.changed"
