"""Models describing one-to-one chat messages."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from goal_chat.db.session import Base
from goal_chat.db.time import utcnow
from goal_chat.services.message_ids import next_message_id


class MessageType(str, Enum):
    """Kind of payload a message carries."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    AUDIO = "audio"


class MessageStatus(str, Enum):
    """Delivery lifecycle of a message."""

    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    DELETED = "deleted"


# Forward-only progression; DELETED is reachable from any live state.
_STATUS_RANK = {
    MessageStatus.SENT: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.READ: 2,
}


def can_transition(current: MessageStatus, target: MessageStatus) -> bool:
    """Return True if a message may move from ``current`` to ``target``.

    Same-state moves are allowed so that repeated receipts stay idempotent.
    """
    if current == target:
        return True
    if current == MessageStatus.DELETED:
        return False
    if target == MessageStatus.DELETED:
        return True
    return _STATUS_RANK[target] > _STATUS_RANK[current]


def payload_shape_error(
    message_type: MessageType, content: str | None, media_url: str | None
) -> str | None:
    """Return why a payload does not fit its type, or None if it does."""
    if message_type == MessageType.TEXT:
        if not content:
            return "Content is required for text messages"
    elif not media_url:
        return f"Media URL is required for {message_type.value} messages"
    return None


def _enum_column(enum_cls: type[Enum], name: str) -> SAEnum:
    # Store enum values (not member names) as portable VARCHARs.
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=16,
        values_callable=lambda members: [member.value for member in members],
    )


def conversation_id_for(user_a: str, user_b: str) -> str:
    """Return the direction-independent key for a pair of users."""
    first, second = sorted((str(user_a), str(user_b)))
    return f"{first}_{second}"


class Message(Base):
    """Chat message exchanged between two users.

    Messages are soft-deleted: a deleted message keeps its row and is only
    filtered out of listings.
    """

    __tablename__ = "chat_message"
    __table_args__ = (
        Index("ix_chat_message_sender_receiver", "sender_id", "receiver_id"),
        Index("ix_chat_message_receiver_sender", "receiver_id", "sender_id"),
        Index("ix_chat_message_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=next_message_id)

    sender_id: Mapped[str] = mapped_column(String(64), nullable=False)
    receiver_id: Mapped[str] = mapped_column(String(64), nullable=False)

    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    message_type: Mapped[MessageType] = mapped_column(
        _enum_column(MessageType, "message_type"), nullable=False, default=MessageType.TEXT
    )
    status: Mapped[MessageStatus] = mapped_column(
        _enum_column(MessageStatus, "message_status"), nullable=False, default=MessageStatus.SENT
    )

    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def conversation_id(self) -> str:
        """Return the key shared by every message between the same two users."""
        return conversation_id_for(self.sender_id, self.receiver_id)

    def counterpart_of(self, user_id: str) -> str:
        """Return the other participant relative to ``user_id``."""
        return self.receiver_id if self.sender_id == user_id else self.sender_id
