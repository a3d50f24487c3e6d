# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification infrastructure.

This package provides:
- PushChannel: FCM HTTP v1 delivery
- SlotNotifier: contract used by the enrollment service when a full
  class frees a slot, with PushSlotNotifier as the FCM implementation

Example:
    notifier = PushSlotNotifier(PushChannel(settings.push), UserRepository(sm))
    await notifier.notify_slot_available("yoga-1", "Morning Yoga")
"""

from src.infrastructure.notifications.channels import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    NotificationPayload,
    PushChannel,
)
from src.infrastructure.notifications.slot import (
    PushSlotNotifier,
    PushTokenSource,
    SlotNotifier,
)

__all__ = [
    "BaseChannel",
    "ChannelResult",
    "ChannelType",
    "DeliveryStatus",
    "NotificationPayload",
    "PushChannel",
    "PushSlotNotifier",
    "PushTokenSource",
    "SlotNotifier",
]
