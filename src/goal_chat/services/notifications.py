"""Outbound port to the notification service.

The chat core hands undeliverable messages to the notification service,
which stores them and pushes to devices. Calls are fire-and-forget from the
chat core's point of view: the sink owns its retries, and a failure here
never fails a send.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from goal_chat.core.errors import NotificationSinkError
from goal_chat.core.settings import Settings

# Configure logger for this module
logger = logging.getLogger(__name__)

NEW_MESSAGE = "NEW_MESSAGE"

HTTP_MULTIPLE_CHOICES = 300


class NotificationSink(Protocol):
    """Anything that can queue a notification for an offline user."""

    async def create_and_send_notification(
        self,
        to_user: str,
        from_user: str | None,
        notification_type: str,
        payload: Mapping[str, Any],
    ) -> None:
        """Queue a notification for ``to_user``."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        ...


class LoggingNotificationSink:
    """Sink used when no notification service is configured."""

    async def create_and_send_notification(
        self,
        to_user: str,
        from_user: str | None,
        notification_type: str,
        payload: Mapping[str, Any],
    ) -> None:
        logger.info(
            "No notification service configured; dropping %s for %s from %s",
            notification_type,
            to_user,
            from_user,
        )

    async def close(self) -> None:
        return None


@dataclass(frozen=True)
class NotificationConfig:
    """Immutable configuration for the HTTP notification sink."""

    base_url: str
    timeout_seconds: float


class HttpNotificationSink:
    """HTTP client wrapper for the notification service."""

    def __init__(self, config: NotificationConfig) -> None:
        self.config = config
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                )
        return self._client

    async def create_and_send_notification(
        self,
        to_user: str,
        from_user: str | None,
        notification_type: str,
        payload: Mapping[str, Any],
    ) -> None:
        """POST a notification request.

        Raises:
            NotificationSinkError: On transport failure or a non-2xx answer.
        """
        client = await self._ensure_client()
        body = {
            "toUser": to_user,
            "fromUser": from_user,
            "type": notification_type,
            "extraData": dict(payload),
        }
        try:
            response = await client.post("/notifications", json=body)
        except httpx.HTTPError as exc:
            raise NotificationSinkError(f"Notification request failed: {exc}") from exc

        if response.status_code >= HTTP_MULTIPLE_CHOICES:
            raise NotificationSinkError(
                f"Notification service responded with {response.status_code}"
            )

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


def build_notification_sink(config: Settings) -> NotificationSink:
    """Return the HTTP sink when a service URL is configured, else the logging sink."""
    if config.notification_service_url:
        return HttpNotificationSink(
            NotificationConfig(
                base_url=config.notification_service_url,
                timeout_seconds=float(config.notification_timeout_seconds),
            )
        )
    return LoggingNotificationSink()
