# tests/v1/test_session.py
"""Tests for the per-connection socket session."""

import pytest

from goal_chat.services.session import IDENTITY_MISMATCH, SessionState

from conftest import RecordingConnection


async def _joined(services, user_id: str, handle: str):
    connection = RecordingConnection()
    session = services.open_session(connection, handle=handle)
    await session.feed({"event": "join", "data": {"userId": user_id}})
    return session, connection


@pytest.mark.asyncio
async def test_join_registers_presence(services) -> None:
    session, _ = await _joined(services, "alice", "a1")

    assert session.state is SessionState.JOINED
    assert session.user_id == "alice"
    assert await services.presence.connections_for("alice") == {"a1"}


@pytest.mark.asyncio
async def test_invalid_join_stays_unjoined(services) -> None:
    connection = RecordingConnection()
    session = services.open_session(connection, handle="a1")

    await session.feed({"event": "join", "data": {}})

    assert session.state is SessionState.UNJOINED
    assert connection.events() == ["error"]
    assert not await services.presence.is_present("alice")


@pytest.mark.asyncio
async def test_send_message_flow(services, notifications) -> None:
    alice_session, alice = await _joined(services, "alice", "a1")
    _, bob = await _joined(services, "bob", "b1")

    await alice_session.feed(
        {
            "event": "send_message",
            "data": {"userId": "alice", "receiverId": "bob", "content": "hi", "messageType": "text"},
        }
    )
    await alice_session.drain()

    [ack] = alice.payloads("message_sent")
    [pushed] = bob.payloads("receive_message")
    assert ack["messageId"] == pushed["id"]
    assert ack["status"] == "delivered"
    assert pushed["content"] == "hi"
    assert notifications.calls == []


@pytest.mark.asyncio
async def test_invalid_send_payload_reports_error(services) -> None:
    session, connection = await _joined(services, "alice", "a1")

    await session.feed(
        {"event": "send_message", "data": {"userId": "alice", "receiverId": "bob", "messageType": "text"}}
    )
    await session.drain()

    [error] = connection.payloads("error")
    assert "Content is required for text messages" in error["message"]
    assert await services.conversations.recent_conversations("alice") == []


@pytest.mark.asyncio
async def test_unknown_event_reports_error(services) -> None:
    session, connection = await _joined(services, "alice", "a1")

    await session.feed({"event": "shout", "data": {}})

    assert connection.payloads("error") == [{"message": "Unknown event: shout"}]


@pytest.mark.asyncio
async def test_frame_without_event_reports_error(services) -> None:
    session, connection = await _joined(services, "alice", "a1")

    await session.feed(["not", "a", "frame"])

    assert connection.events() == ["error"]


@pytest.mark.asyncio
async def test_read_and_delete_events(services) -> None:
    alice_session, alice = await _joined(services, "alice", "a1")
    bob_session, bob = await _joined(services, "bob", "b1")
    sent = await services.router.send("alice", "bob", "text", "hello", origin="a1")

    await bob_session.feed({"event": "read_message", "data": {"messageId": sent.message.id, "userId": "bob"}})
    await bob_session.drain()
    await alice_session.feed(
        {"event": "delete_message", "data": {"messageId": sent.message.id, "userId": "alice"}}
    )
    await alice_session.drain()

    assert alice.payloads("message_read") == [{"messageId": sent.message.id}]
    assert bob.payloads("message_deleted") == [{"messageId": sent.message.id}]
    assert alice.payloads("message_deleted") == [{"messageId": sent.message.id}]


@pytest.mark.asyncio
async def test_typing_event(services) -> None:
    alice_session, _ = await _joined(services, "alice", "a1")
    _, bob = await _joined(services, "bob", "b1")

    await alice_session.feed(
        {"event": "typing", "data": {"userId": "alice", "receiverId": "bob", "isTyping": True}}
    )
    await alice_session.drain()

    assert bob.payloads("user_typing") == [{"userId": "alice", "isTyping": True}]


@pytest.mark.asyncio
async def test_payload_identity_is_trusted_by_default(services) -> None:
    session, connection = await _joined(services, "alice", "a1")

    await session.feed(
        {
            "event": "send_message",
            "data": {"userId": "mallory", "receiverId": "bob", "content": "hi", "messageType": "text"},
        }
    )
    await session.drain()

    assert connection.payloads("message_sent")
    [conversation] = await services.conversations.recent_conversations("mallory")
    assert conversation.last_message.sender_id == "mallory"


@pytest.mark.asyncio
async def test_bound_identity_is_enforced_when_enabled(services) -> None:
    services.config = services.config.model_copy(update={"enforce_bound_identity": True})
    session, connection = await _joined(services, "alice", "a1")

    await session.feed(
        {
            "event": "send_message",
            "data": {"userId": "mallory", "receiverId": "bob", "content": "hi", "messageType": "text"},
        }
    )
    await session.drain()

    assert connection.payloads("error") == [{"message": IDENTITY_MISMATCH}]
    assert await services.conversations.recent_conversations("mallory") == []


@pytest.mark.asyncio
async def test_close_unregisters_and_ignores_later_frames(services) -> None:
    session, connection = await _joined(services, "alice", "a1")

    await session.close()
    await session.feed({"event": "typing", "data": {"userId": "alice", "receiverId": "bob"}})

    assert session.state is SessionState.DISCONNECTED
    assert not await services.presence.is_present("alice")
    assert services.hub.get("a1") is None
    assert connection.frames == []


@pytest.mark.asyncio
async def test_receiver_that_left_gets_notification(services, notifications) -> None:
    await _joined(services, "alice", "a1")
    bob_session, _ = await _joined(services, "bob", "b1")
    await bob_session.close()

    result = await services.router.send("alice", "bob", "text", "are you there?", origin="a1")

    assert result.outcome.value == "queued_for_notification"
    assert [call["to_user"] for call in notifications.calls] == ["bob"]
