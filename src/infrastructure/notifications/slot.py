# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Slot-freed notifications.

When an unenrollment turns a full class into one with a free slot, the
enrollment service asks a SlotNotifier to tell members about it. The push
implementation broadcasts to every registered device, so any member can
grab the slot.
"""

import logging
from abc import ABC, abstractmethod
from typing import Protocol

from src.infrastructure.notifications.channels.base import (
    ChannelResult,
    NotificationPayload,
)
from src.infrastructure.notifications.channels.push import PushChannel

logger = logging.getLogger(__name__)

SLOT_AVAILABLE = "slot_available"


class PushTokenSource(Protocol):
    """Anything able to list registered device tokens."""

    async def list_push_tokens(self) -> list[str]: ...


class SlotNotifier(ABC):
    """Dispatcher for slot-freed notices."""

    @abstractmethod
    async def notify_slot_available(
        self, class_id: str, class_title: str
    ) -> ChannelResult:
        """Announce a freed slot.

        Args:
            class_id: Class that gained a free slot.
            class_title: Title captured when the slot was freed.

        Raises:
            ValueError: If either argument is empty.
        """


class PushSlotNotifier(SlotNotifier):
    """Broadcasts freed slots over FCM to all registered devices."""

    def __init__(self, channel: PushChannel, tokens: PushTokenSource) -> None:
        self._channel = channel
        self._tokens = tokens

    async def notify_slot_available(
        self, class_id: str, class_title: str
    ) -> ChannelResult:
        if not class_id or not class_title:
            raise ValueError("class_id and class_title are required")

        payload = NotificationPayload(
            notification_type=SLOT_AVAILABLE,
            title=f"A spot opened up in {class_title}",
            message="Open Vitbox to book your place.",
            data={"classId": class_id},
            push_tokens=await self._tokens.list_push_tokens(),
        )
        result = await self._channel.send(payload)
        logger.info(
            "Slot notification for class %s: %s (%s)",
            class_id,
            result.status.value,
            result.error_message or f"{len(payload.push_tokens)} tokens",
        )
        return result
