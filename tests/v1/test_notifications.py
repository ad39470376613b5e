# tests/v1/test_notifications.py
"""Tests for the notification service client."""

import json

import httpx
import pytest

from goal_chat.core.errors import NotificationSinkError
from goal_chat.services.notifications import (
    NEW_MESSAGE,
    HttpNotificationSink,
    LoggingNotificationSink,
    NotificationConfig,
    build_notification_sink,
)

BASE_URL = "http://notifications.test"


def _sink_with(handler) -> HttpNotificationSink:
    sink = HttpNotificationSink(NotificationConfig(base_url=BASE_URL, timeout_seconds=1.0))
    sink._client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return sink


@pytest.mark.asyncio
async def test_posts_notification_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"ok": True})

    sink = _sink_with(handler)
    await sink.create_and_send_notification(
        "bob", "alice", NEW_MESSAGE, {"content": "hi", "messageId": "m1"}
    )
    await sink.close()

    assert len(seen) == 1
    assert seen[0].url.path == "/notifications"
    assert json.loads(seen[0].content) == {
        "toUser": "bob",
        "fromUser": "alice",
        "type": "NEW_MESSAGE",
        "extraData": {"content": "hi", "messageId": "m1"},
    }


@pytest.mark.asyncio
async def test_error_status_raises() -> None:
    sink = _sink_with(lambda request: httpx.Response(503))

    with pytest.raises(NotificationSinkError, match="503"):
        await sink.create_and_send_notification("bob", "alice", NEW_MESSAGE, {})
    await sink.close()


@pytest.mark.asyncio
async def test_transport_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    sink = _sink_with(handler)

    with pytest.raises(NotificationSinkError):
        await sink.create_and_send_notification("bob", "alice", NEW_MESSAGE, {})
    await sink.close()


@pytest.mark.asyncio
async def test_close_without_client_is_safe() -> None:
    sink = HttpNotificationSink(NotificationConfig(base_url=BASE_URL, timeout_seconds=1.0))
    await sink.close()
    assert sink._client is None


def test_build_notification_sink(chat_settings) -> None:
    assert isinstance(build_notification_sink(chat_settings), LoggingNotificationSink)

    configured = chat_settings.model_copy(update={"notification_service_url": BASE_URL})
    sink = build_notification_sink(configured)
    assert isinstance(sink, HttpNotificationSink)
    assert sink.config.base_url == BASE_URL
    assert sink.config.timeout_seconds == pytest.approx(0.2)
