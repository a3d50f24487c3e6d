# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Push notification channel using Firebase Cloud Messaging.

This channel sends push notifications to browsers and mobile devices
using the FCM HTTP v1 API. It requires valid Firebase service account
credentials to be configured.

Configuration (via environment variables):
- FIREBASE_CREDENTIALS_PATH: Path to service account JSON file
- FIREBASE_PROJECT_ID: Firebase project ID
- FIREBASE_ICON_URL / FIREBASE_BADGE_URL: Web push artwork
"""

import asyncio
import os
from typing import Any

import httpx
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from src.core.config.settings import PushSettings
from src.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    NotificationPayload,
)

# FCM HTTP v1 API endpoint template
FCM_API_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
FCM_SCOPES = ["https://www.googleapis.com/auth/firebase.messaging"]


class PushChannel(BaseChannel):
    """Push notification channel using Firebase Cloud Messaging.

    Sends one FCM HTTP v1 request per device token and reports the
    aggregate outcome. Never raises: an unconfigured channel yields a
    SKIPPED result and delivery errors a FAILED one.
    """

    def __init__(
        self,
        settings: PushSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the push channel.

        Args:
            settings: Firebase settings.
            http_client: Client to reuse; a short-lived one is created per
                send when omitted.
        """
        super().__init__()
        self._settings = settings
        self._http_client = http_client
        self._credentials: service_account.Credentials | None = None
        self._initialized = False
        self._init_error: str | None = None

    @property
    def channel_type(self) -> ChannelType:
        """Return the channel type."""
        return ChannelType.PUSH

    async def _ensure_initialized(self) -> bool:
        """Ensure Firebase credentials are loaded.

        Returns:
            True if initialization succeeded.
        """
        if self._initialized:
            return True

        if self._init_error:
            return False

        if not self._settings.is_configured:
            self._init_error = "Firebase credentials not configured"
            self.logger.warning(
                "Push notifications disabled: FIREBASE_CREDENTIALS_PATH or "
                "FIREBASE_PROJECT_ID not set"
            )
            return False

        credentials_path = self._settings.credentials_path
        if not os.path.exists(credentials_path):
            self._init_error = f"Credentials file not found: {credentials_path}"
            self.logger.error(self._init_error)
            return False

        try:
            self._credentials = service_account.Credentials.from_service_account_file(
                credentials_path,
                scopes=FCM_SCOPES,
            )
        except (ValueError, OSError) as e:
            self._init_error = f"Failed to initialize: {str(e)}"
            self.logger.error(self._init_error)
            return False

        self._initialized = True
        self.logger.info(
            "FCM push channel initialized for project %s", self._settings.project_id
        )
        return True

    async def _get_access_token(self) -> str | None:
        """Get OAuth2 access token for FCM API.

        Returns:
            Access token string or None if failed.
        """
        if not self._credentials:
            return None

        try:
            # Token refresh is blocking, run it in the default executor
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._credentials.refresh, Request())
            return self._credentials.token

        except Exception as e:
            self.logger.error("Failed to get FCM access token: %s", str(e))
            return None

    async def send(self, payload: NotificationPayload) -> ChannelResult:
        """Send push notification via FCM.

        Args:
            payload: The notification payload.

        Returns:
            ChannelResult with delivery status.
        """
        if not await self._ensure_initialized():
            return self.create_skipped_result(
                self._init_error or "Push channel not configured"
            )

        if not payload.push_tokens:
            return self.create_skipped_result("No push tokens available")

        access_token = await self._get_access_token()
        if not access_token:
            return self.create_failure_result("Failed to obtain access token")

        if self._http_client is not None:
            results = await self._send_all(self._http_client, payload, access_token)
        else:
            async with httpx.AsyncClient(timeout=30.0) as client:
                results = await self._send_all(client, payload, access_token)

        success_count = sum(1 for result in results if result.get("success"))
        failure_count = len(results) - success_count

        if success_count == 0 and failure_count > 0:
            return self.create_failure_result(
                f"All {failure_count} push notifications failed",
                metadata={"results": results},
            )

        first_sent = next((r for r in results if r.get("success")), None)
        return self.create_success_result(
            message_id=first_sent.get("message_id") if first_sent else None,
            metadata={
                "success_count": success_count,
                "failure_count": failure_count,
                "results": results,
            },
        )

    async def _send_all(
        self,
        client: httpx.AsyncClient,
        payload: NotificationPayload,
        access_token: str,
    ) -> list[dict[str, Any]]:
        return [
            await self._send_to_token(client, token, payload, access_token)
            for token in payload.push_tokens
            if token
        ]

    async def _send_to_token(
        self,
        client: httpx.AsyncClient,
        token: str,
        payload: NotificationPayload,
        access_token: str,
    ) -> dict[str, Any]:
        """Send notification to a single device token.

        Returns:
            Result dictionary with success status.
        """
        url = FCM_API_URL.format(project_id=self._settings.project_id)
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

        try:
            response = await client.post(
                url,
                headers=headers,
                json={"message": self._build_fcm_message(token, payload)},
            )
        except httpx.HTTPError as e:
            self.logger.error("Failed to send push to token: %s", str(e))
            return {"success": False, "token": token[:20] + "...", "error": str(e)}

        if response.status_code == 200:
            message_id = response.json().get("name", "").split("/")[-1]
            self.logger.debug("Push sent successfully to %s...: %s", token[:20], message_id)
            return {"success": True, "token": token[:20] + "...", "message_id": message_id}

        self.logger.warning(
            "FCM request failed (%d): %s", response.status_code, response.text
        )
        return {
            "success": False,
            "token": token[:20] + "...",
            "error": response.text,
            "status_code": response.status_code,
        }

    def _build_fcm_message(
        self,
        token: str,
        payload: NotificationPayload,
    ) -> dict[str, Any]:
        """Build FCM message structure.

        Args:
            token: Device token.
            payload: Notification payload.

        Returns:
            FCM message dictionary.
        """
        return {
            "token": token,
            "notification": {
                "title": payload.title,
                "body": payload.message,
            },
            "data": dict(payload.data),
            "webpush": {
                "notification": {
                    "icon": self._settings.icon_url,
                    "badge": self._settings.badge_url,
                },
            },
        }
