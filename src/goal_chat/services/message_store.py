"""Durable message storage with status transition rules.

``MessageStore`` is the only writer of ``Message`` rows. Every operation runs
in its own session and transaction, and writes that target the same message
id are additionally serialized in-process so that concurrent receipts cannot
interleave their read-modify-write cycles.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from goal_chat.core.errors import (
    InvalidTransitionError,
    MessageNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from goal_chat.db.time import utcnow
from goal_chat.models.message import (
    Message,
    MessageStatus,
    MessageType,
    can_transition,
    payload_shape_error,
)
from goal_chat.repositories.message_repo import MessageRepository
from goal_chat.services.message_ids import next_message_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageInput:
    """Fields a client supplies when sending a message."""

    sender_id: str
    receiver_id: str
    message_type: MessageType | str
    content: str | None = None
    media_url: str | None = None


def coerce_message_type(value: MessageType | str) -> MessageType:
    """Return ``value`` as a ``MessageType`` or raise ``ValidationError``."""
    try:
        return MessageType(value)
    except ValueError as exc:
        raise ValidationError(f"Unsupported message type: {value!r}") from exc


def validate_input(data: MessageInput) -> MessageType:
    """Check the content/media rule for a send and return the parsed type."""
    if not data.sender_id or not data.receiver_id:
        raise ValidationError("Sender and receiver are required")
    message_type = coerce_message_type(data.message_type)
    problem = payload_shape_error(message_type, data.content, data.media_url)
    if problem:
        raise ValidationError(problem)
    return message_type


class MessageStore:
    """CRUD over messages enforcing the lifecycle invariants."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, message_id: str) -> asyncio.Lock:
        lock = self._locks.get(message_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[message_id] = lock
        return lock

    async def create(self, data: MessageInput) -> Message:
        """Persist a new message with status SENT.

        Raises:
            ValidationError: If the content or media URL required by the
                message type is missing.
            StoreUnavailableError: If the database write fails.
        """
        message_type = validate_input(data)
        now = utcnow()
        message = Message(
            id=next_message_id(),
            sender_id=data.sender_id,
            receiver_id=data.receiver_id,
            content=data.content,
            media_url=data.media_url,
            message_type=message_type,
            status=MessageStatus.SENT,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._session_factory() as session, session.begin():
                await MessageRepository(session).add(message)
        except SQLAlchemyError as exc:
            logger.error("Error saving message: %s", exc, exc_info=True)
            raise StoreUnavailableError("Failed to save message") from exc
        return message

    async def get(self, message_id: str) -> Message:
        """Return a stored message or raise ``MessageNotFoundError``."""
        try:
            async with self._session_factory() as session:
                message = await MessageRepository(session).get_by_id(message_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Failed to load message") from exc
        if message is None:
            raise MessageNotFoundError(message_id)
        return message

    async def _update(self, message_id: str, mutate: Callable[[Message], None]) -> Message:
        async with self._lock_for(message_id):
            try:
                async with self._session_factory() as session, session.begin():
                    message = await MessageRepository(session).get_by_id(message_id)
                    if message is None:
                        raise MessageNotFoundError(message_id)
                    mutate(message)
            except SQLAlchemyError as exc:
                logger.error("Error updating message %s: %s", message_id, exc, exc_info=True)
                raise StoreUnavailableError("Failed to update message") from exc
        return message

    async def set_delivered(self, message_id: str) -> Message:
        """Mark a freshly sent message as delivered.

        Messages already read or deleted are left untouched.
        """

        def mutate(message: Message) -> None:
            if message.status == MessageStatus.SENT:
                message.status = MessageStatus.DELIVERED
                message.updated_at = utcnow()

        return await self._update(message_id, mutate)

    async def mark_read(self, message_id: str) -> Message:
        """Set status READ and stamp ``read_at``.

        Raises:
            MessageNotFoundError: If the id does not resolve.
            InvalidTransitionError: If the message was deleted.
        """

        def mutate(message: Message) -> None:
            if not can_transition(message.status, MessageStatus.READ):
                raise InvalidTransitionError(
                    f"Cannot mark a {message.status.value} message as read"
                )
            if message.status != MessageStatus.READ:
                now = utcnow()
                message.status = MessageStatus.READ
                message.read_at = now
                message.updated_at = now

        return await self._update(message_id, mutate)

    async def mark_deleted(self, message_id: str, by_user_id: str) -> Message:
        """Soft-delete a message on behalf of ``by_user_id``.

        Ownership is not checked here. A second delete keeps the first
        deletion's timestamp and actor.

        Raises:
            MessageNotFoundError: If the id does not resolve.
        """

        def mutate(message: Message) -> None:
            if message.status == MessageStatus.DELETED:
                return
            now = utcnow()
            message.status = MessageStatus.DELETED
            message.read_at = None
            message.deleted_at = now
            message.deleted_by = by_user_id
            message.updated_at = now

        return await self._update(message_id, mutate)
