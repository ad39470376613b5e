# src/goal_chat/schemas/message.py
"""Chat message Pydantic schemas for the HTTP and socket surfaces."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from pydantic.alias_generators import to_camel

from goal_chat.db.time import as_utc
from goal_chat.models.message import MessageStatus, MessageType, payload_shape_error

USER_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageOut(_CamelModel):
    """Schema for a stored message as sent to clients."""

    id: str
    sender_id: str
    receiver_id: str
    content: str | None = None
    media_url: str | None = None
    message_type: MessageType
    status: MessageStatus
    read_at: datetime | None = None
    deleted_at: datetime | None = None
    deleted_by: str | None = None
    created_at: datetime
    updated_at: datetime
    conversation_id: str

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @field_serializer("read_at", "deleted_at", "created_at", "updated_at")
    def serialize_timestamp(self, value: datetime | None) -> str | None:
        """Render timestamps as ISO-8601 in UTC."""
        if value is None:
            return None
        return as_utc(value).isoformat()


class PublicProfile(_CamelModel):
    """Projection of a counterpart's profile shown next to a conversation."""

    id: str
    username: str | None = None
    avatar_url: str | None = None


class ConversationOut(_CamelModel):
    """One row of the recent conversations list."""

    counterpart: PublicProfile
    last_message: MessageOut


class JoinPayload(_CamelModel):
    """Payload of the ``join`` event."""

    user_id: str = Field(..., min_length=1, max_length=64)


class SendMessagePayload(_CamelModel):
    """Payload of the ``send_message`` event."""

    user_id: str = Field(..., min_length=1, max_length=64)
    receiver_id: str = Field(..., pattern=USER_ID_PATTERN)
    content: str | None = None
    message_type: MessageType
    media_url: str | None = None

    @model_validator(mode="after")
    def check_shape(self) -> SendMessagePayload:
        """Require content for text messages and a media URL otherwise."""
        problem = payload_shape_error(self.message_type, self.content, self.media_url)
        if problem:
            raise ValueError(problem)
        return self


class MessageRefPayload(_CamelModel):
    """Payload of the ``read_message`` and ``delete_message`` events."""

    message_id: str = Field(..., min_length=1, max_length=64)
    user_id: str = Field(..., min_length=1, max_length=64)


class TypingPayload(_CamelModel):
    """Payload of the ``typing`` event."""

    receiver_id: str = Field(..., pattern=USER_ID_PATTERN)
    user_id: str = Field(..., min_length=1, max_length=64)
    is_typing: bool = False


class SocketFrame(BaseModel):
    """JSON frame exchanged over the chat socket in both directions."""

    event: str = Field(..., min_length=1)
    data: dict = Field(default_factory=dict)
