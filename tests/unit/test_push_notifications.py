# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the FCM push channel and the slot notifier."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from src.core.config.settings import PushSettings
from src.infrastructure.notifications.channels.base import (
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    NotificationPayload,
)
from src.infrastructure.notifications.channels.push import PushChannel
from src.infrastructure.notifications.slot import SLOT_AVAILABLE, PushSlotNotifier

CREDENTIALS_FACTORY = (
    "src.infrastructure.notifications.channels.push."
    "service_account.Credentials.from_service_account_file"
)


@pytest.fixture
def push_settings(tmp_path) -> PushSettings:
    credentials = tmp_path / "fcm.json"
    credentials.write_text("{}")
    return PushSettings(credentials_path=str(credentials), project_id="vitbox")


@pytest.fixture
def fake_credentials():
    credentials = MagicMock()
    credentials.token = "access-token"
    with patch(CREDENTIALS_FACTORY, return_value=credentials):
        yield credentials


@pytest.fixture
def payload() -> NotificationPayload:
    return NotificationPayload(
        notification_type=SLOT_AVAILABLE,
        title="A spot opened up in Spin",
        message="Open Vitbox to book your place.",
        data={"classId": "c1"},
        push_tokens=["token-1", "token-2"],
    )


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestPushChannel:
    """Tests for PushChannel."""

    @pytest.mark.asyncio
    async def test_unconfigured_channel_skips(self, payload) -> None:
        channel = PushChannel(PushSettings(credentials_path=None, project_id=None))

        result = await channel.send(payload)

        assert result.status is DeliveryStatus.SKIPPED
        assert result.delivered is False
        assert channel.channel_type is ChannelType.PUSH

    @pytest.mark.asyncio
    async def test_missing_credentials_file_skips(self, payload, tmp_path) -> None:
        settings = PushSettings(credentials_path=str(tmp_path / "nope.json"), project_id="vitbox")

        result = await PushChannel(settings).send(payload)

        assert result.status is DeliveryStatus.SKIPPED
        assert "not found" in result.error_message

    @pytest.mark.asyncio
    async def test_no_tokens_skips(self, push_settings, fake_credentials, payload) -> None:
        payload.push_tokens = []

        result = await PushChannel(push_settings).send(payload)

        assert result.status is DeliveryStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_sends_one_message_per_token(
        self, push_settings, fake_credentials, payload
    ) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"name": "projects/vitbox/messages/42"})

        async with client_for(handler) as client:
            result = await PushChannel(push_settings, http_client=client).send(payload)

        assert result.status is DeliveryStatus.SENT
        assert result.delivered is True
        assert result.message_id == "42"
        assert result.metadata["success_count"] == 2

        assert len(requests) == 2
        first = requests[0]
        assert str(first.url) == "https://fcm.googleapis.com/v1/projects/vitbox/messages:send"
        assert first.headers["Authorization"] == "Bearer access-token"
        message = json.loads(first.content)["message"]
        assert message["token"] == "token-1"
        assert message["notification"] == {
            "title": "A spot opened up in Spin",
            "body": "Open Vitbox to book your place.",
        }
        assert message["data"] == {"classId": "c1"}
        assert message["webpush"]["notification"]["icon"] == push_settings.icon_url

    @pytest.mark.asyncio
    async def test_partial_failure_is_still_sent(
        self, push_settings, fake_credentials, payload
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            token = json.loads(request.content)["message"]["token"]
            if token == "token-1":
                return httpx.Response(404, json={"error": {"status": "NOT_FOUND"}})
            return httpx.Response(200, json={"name": "projects/vitbox/messages/7"})

        async with client_for(handler) as client:
            result = await PushChannel(push_settings, http_client=client).send(payload)

        assert result.status is DeliveryStatus.SENT
        assert result.metadata["failure_count"] == 1
        assert result.message_id == "7"

    @pytest.mark.asyncio
    async def test_all_failures(self, push_settings, fake_credentials, payload) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with client_for(handler) as client:
            result = await PushChannel(push_settings, http_client=client).send(payload)

        assert result.status is DeliveryStatus.FAILED
        assert "All 2" in result.error_message

    @pytest.mark.asyncio
    async def test_token_refresh_failure(self, push_settings, fake_credentials, payload) -> None:
        fake_credentials.refresh.side_effect = RuntimeError("invalid grant")

        result = await PushChannel(push_settings).send(payload)

        assert result.status is DeliveryStatus.FAILED
        assert result.error_message == "Failed to obtain access token"


class TestPushSlotNotifier:
    """Tests for PushSlotNotifier."""

    @pytest.mark.asyncio
    async def test_broadcasts_to_all_tokens(self) -> None:
        channel = MagicMock()
        channel.send = AsyncMock(
            return_value=ChannelResult(channel=ChannelType.PUSH, status=DeliveryStatus.SENT)
        )
        tokens = MagicMock()
        tokens.list_push_tokens = AsyncMock(return_value=["t1", "t2"])

        result = await PushSlotNotifier(channel, tokens).notify_slot_available("c1", "Spin")

        assert result.delivered is True
        sent: NotificationPayload = channel.send.await_args.args[0]
        assert sent.notification_type == SLOT_AVAILABLE
        assert sent.title == "A spot opened up in Spin"
        assert sent.data == {"classId": "c1"}
        assert sent.push_tokens == ["t1", "t2"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("class_id,title", [("", "Spin"), ("c1", "")])
    async def test_requires_class_and_title(self, class_id: str, title: str) -> None:
        notifier = PushSlotNotifier(MagicMock(), MagicMock())

        with pytest.raises(ValueError):
            await notifier.notify_slot_available(class_id, title)
