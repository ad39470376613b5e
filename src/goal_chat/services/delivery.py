"""Message delivery orchestration.

The router persists a send, then either pushes the message to the
recipient's live connections or hands it to the notification service, and
always answers the sender's connection with an acknowledgement or an error.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from goal_chat.core.errors import ChatError, ValidationError
from goal_chat.models.message import Message, MessageType
from goal_chat.schemas.message import MessageOut
from goal_chat.services.connections import ConnectionHub
from goal_chat.services.events import DELETE_FAILED, READ_FAILED, SEND_FAILED, ChatEvent
from goal_chat.services.message_store import MessageInput, MessageStore
from goal_chat.services.notifications import NEW_MESSAGE, NotificationSink
from goal_chat.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)


class DeliveryOutcome(str, Enum):
    """How a sent message reached (or will reach) its recipient."""

    DELIVERED = "delivered"
    QUEUED_FOR_NOTIFICATION = "queued_for_notification"


@dataclass(frozen=True)
class SendResult:
    """Stored message plus the routing decision taken for it."""

    message: Message
    outcome: DeliveryOutcome
    notified: bool = False


def serialize_message(message: Message) -> dict[str, Any]:
    """Render a message in its wire form."""
    return MessageOut.model_validate(message).model_dump(mode="json", by_alias=True)


class DeliveryRouter:
    """Decides live push versus deferred notification for each send."""

    def __init__(
        self,
        store: MessageStore,
        presence: PresenceRegistry,
        hub: ConnectionHub,
        notifications: NotificationSink,
        *,
        notification_timeout: float = 3.0,
        surface_read_errors: bool = False,
    ) -> None:
        self._store = store
        self._presence = presence
        self._hub = hub
        self._notifications = notifications
        self._notification_timeout = notification_timeout
        self._surface_read_errors = surface_read_errors

    async def _emit_error(self, origin: str | None, message: str) -> None:
        if origin is not None:
            await self._hub.emit(origin, ChatEvent.ERROR, {"message": message})

    async def send(
        self,
        sender_id: str,
        receiver_id: str,
        message_type: MessageType | str,
        content: str | None = None,
        media_url: str | None = None,
        *,
        origin: str | None = None,
    ) -> SendResult:
        """Persist and route one message.

        Args:
            origin: Handle of the sender's connection; receives the
                ``message_sent`` acknowledgement or an ``error`` event.

        Raises:
            ValidationError: If the payload does not fit its type.
            ChatError: If persistence fails. In both cases the origin has
                already been told.
        """
        try:
            message = await self._store.create(
                MessageInput(
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    message_type=message_type,
                    content=content,
                    media_url=media_url,
                )
            )
            result = await self._route(message)
        except ValidationError as exc:
            await self._emit_error(origin, str(exc))
            raise
        except Exception as exc:
            logger.error("Error sending message from %s: %s", sender_id, exc, exc_info=True)
            await self._emit_error(origin, SEND_FAILED)
            if isinstance(exc, ChatError):
                raise
            raise ChatError(SEND_FAILED) from exc

        if origin is not None:
            await self._hub.emit(
                origin,
                ChatEvent.MESSAGE_SENT,
                {
                    "messageId": result.message.id,
                    "status": result.message.status.value,
                    "outcome": result.outcome.value,
                },
            )
        return result

    async def _route(self, message: Message) -> SendResult:
        if await self._presence.is_present(message.receiver_id):
            message = await self._store.set_delivered(message.id)
            await self._hub.emit_to_user(
                message.receiver_id, ChatEvent.RECEIVE_MESSAGE, serialize_message(message)
            )
            return SendResult(message, DeliveryOutcome.DELIVERED)

        notified = await self._notify(message)
        return SendResult(message, DeliveryOutcome.QUEUED_FOR_NOTIFICATION, notified)

    async def _notify(self, message: Message) -> bool:
        try:
            await asyncio.wait_for(
                self._notifications.create_and_send_notification(
                    message.receiver_id,
                    message.sender_id,
                    NEW_MESSAGE,
                    {"content": message.content, "messageId": message.id},
                ),
                timeout=self._notification_timeout,
            )
        except TimeoutError:
            logger.warning(
                "Notification for message %s timed out after %.1fs",
                message.id,
                self._notification_timeout,
            )
            return False
        except Exception as exc:
            logger.warning("Notification for message %s failed: %s", message.id, exc)
            return False
        return True

    async def read(
        self, message_id: str, reader_user_id: str, *, origin: str | None = None
    ) -> Message | None:
        """Apply a read receipt and tell the sender.

        Failures are logged and swallowed unless ``surface_read_errors`` is
        set, in which case the origin receives an ``error`` event.
        """
        try:
            message = await self._store.mark_read(message_id)
        except ChatError as exc:
            logger.error(
                "Error marking message %s as read for %s: %s", message_id, reader_user_id, exc
            )
            if self._surface_read_errors:
                await self._emit_error(origin, READ_FAILED)
            return None

        await self._hub.emit_to_user(
            message.sender_id, ChatEvent.MESSAGE_READ, {"messageId": message.id}
        )
        return message

    async def delete(
        self, message_id: str, requester_user_id: str, *, origin: str | None = None
    ) -> Message | None:
        """Soft-delete a message and tell both sides."""
        try:
            message = await self._store.mark_deleted(message_id, requester_user_id)
        except ChatError as exc:
            logger.error(
                "Error deleting message %s for %s: %s", message_id, requester_user_id, exc
            )
            await self._emit_error(origin, DELETE_FAILED)
            return None

        payload = {"messageId": message.id}
        await self._hub.emit_to_user(message.receiver_id, ChatEvent.MESSAGE_DELETED, payload)
        if origin is not None:
            await self._hub.emit(origin, ChatEvent.MESSAGE_DELETED, payload)
        return message

    async def typing(self, sender_id: str, receiver_id: str, is_typing: bool) -> None:
        """Relay a typing indicator; nothing is stored or acknowledged."""
        await self._hub.emit_to_user(
            receiver_id, ChatEvent.USER_TYPING, {"userId": sender_id, "isTyping": is_typing}
        )
