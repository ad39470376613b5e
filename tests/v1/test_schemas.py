# tests/v1/test_schemas.py
"""Tests for wire schemas and payload validation."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from goal_chat.models import Message, MessageStatus, MessageType
from goal_chat.schemas import MessageOut, SendMessagePayload, SocketFrame, TypingPayload
from goal_chat.services.session import describe_validation_error


def test_message_out_uses_camel_case_and_utc() -> None:
    created = datetime(2026, 3, 1, 8, 30)
    message = Message(
        id="m1",
        sender_id="alice",
        receiver_id="bob",
        content="hi",
        message_type=MessageType.TEXT,
        status=MessageStatus.SENT,
        created_at=created,
        updated_at=created.replace(tzinfo=UTC),
    )

    data = MessageOut.model_validate(message).model_dump(mode="json", by_alias=True)

    assert data["senderId"] == "alice"
    assert data["messageType"] == "text"
    assert data["status"] == "sent"
    assert data["readAt"] is None
    assert data["createdAt"] == "2026-03-01T08:30:00+00:00"
    assert data["updatedAt"] == "2026-03-01T08:30:00+00:00"
    assert data["conversationId"] == "alice_bob"


def test_send_payload_accepts_aliases() -> None:
    payload = SendMessagePayload.model_validate(
        {"userId": "alice", "receiverId": "bob", "messageType": "audio", "mediaUrl": "https://a/b.m4a"}
    )
    assert payload.message_type == MessageType.AUDIO
    assert payload.content is None


@pytest.mark.parametrize("receiver", ["", "has space", "x" * 65, "semi;colon"])
def test_send_payload_rejects_bad_receiver(receiver) -> None:
    with pytest.raises(ValidationError):
        SendMessagePayload.model_validate(
            {"userId": "alice", "receiverId": receiver, "messageType": "text", "content": "hi"}
        )


def test_send_payload_rejects_unknown_type() -> None:
    with pytest.raises(ValidationError):
        SendMessagePayload.model_validate(
            {"userId": "alice", "receiverId": "bob", "messageType": "sticker", "content": "hi"}
        )


def test_typing_defaults_to_not_typing() -> None:
    assert TypingPayload.model_validate({"userId": "a", "receiverId": "b"}).is_typing is False


def test_describe_validation_error() -> None:
    with pytest.raises(ValidationError) as exc_info:
        SendMessagePayload.model_validate({"userId": "alice", "receiverId": "bob", "messageType": "text"})
    assert describe_validation_error(exc_info.value) == "Content is required for text messages"

    with pytest.raises(ValidationError) as exc_info:
        SocketFrame.model_validate({})
    assert describe_validation_error(exc_info.value).startswith("event: ")
