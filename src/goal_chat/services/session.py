"""Per-connection socket session.

A ``ChatSession`` owns one transport handle and turns inbound frames into
Delivery Router calls. It moves through UNJOINED -> JOINED -> DISCONNECTED.

``join`` is applied inline so presence is in place before any later frame
from the same connection is looked at; every other event runs in its own
task so a slow store call does not hold up the socket's read loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from goal_chat.core.errors import ChatError
from goal_chat.schemas.message import (
    JoinPayload,
    MessageRefPayload,
    SendMessagePayload,
    SocketFrame,
    TypingPayload,
)
from goal_chat.services.connections import Connection, ConnectionHub
from goal_chat.services.delivery import DeliveryRouter
from goal_chat.services.events import ChatEvent
from goal_chat.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)

IDENTITY_MISMATCH = "User id does not match the joined identity"


class SessionState(str, Enum):
    """Lifecycle of one socket connection."""

    UNJOINED = "unjoined"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


def describe_validation_error(exc: PydanticValidationError) -> str:
    """Flatten pydantic errors into one client-facing sentence."""
    parts: list[str] = []
    for error in exc.errors():
        msg = str(error.get("msg", "Invalid value"))
        msg = msg.removeprefix("Value error, ")
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {msg}" if location else msg)
    return "; ".join(parts) or "Invalid payload"


class ChatSession:
    """Binds one connection's events to presence and the delivery router.

    The acting identity of each event is the ``userId`` in its payload, not
    the identity bound at join. With ``enforce_bound_identity`` the two must
    match and events from connections that have not joined are rejected.
    """

    def __init__(
        self,
        handle: str,
        connection: Connection,
        *,
        router: DeliveryRouter,
        presence: PresenceRegistry,
        hub: ConnectionHub,
        enforce_bound_identity: bool = False,
    ) -> None:
        self.handle = handle
        self.state = SessionState.UNJOINED
        self.user_id: str | None = None
        self._router = router
        self._presence = presence
        self._hub = hub
        self._enforce_bound_identity = enforce_bound_identity
        self._tasks: set[asyncio.Task[None]] = set()
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[None]]] = {
            ChatEvent.SEND_MESSAGE.value: self.on_send_message,
            ChatEvent.READ_MESSAGE.value: self.on_read_message,
            ChatEvent.DELETE_MESSAGE.value: self.on_delete_message,
            ChatEvent.TYPING.value: self.on_typing,
        }
        hub.attach(handle, connection)

    async def _error(self, message: str) -> None:
        await self._hub.emit(self.handle, ChatEvent.ERROR, {"message": message})

    async def _parse(self, model: type[BaseModel], data: dict[str, Any]) -> Any | None:
        try:
            return model.model_validate(data)
        except PydanticValidationError as exc:
            await self._error(describe_validation_error(exc))
            return None

    async def _check_identity(self, claimed_user_id: str) -> bool:
        if not self._enforce_bound_identity:
            return True
        if self.state is SessionState.JOINED and claimed_user_id == self.user_id:
            return True
        logger.warning(
            "Connection %s (bound to %s) sent an event as %s",
            self.handle,
            self.user_id,
            claimed_user_id,
        )
        await self._error(IDENTITY_MISMATCH)
        return False

    async def feed(self, raw: Any) -> None:
        """Accept one inbound frame."""
        if self.state is SessionState.DISCONNECTED:
            logger.debug("Ignoring frame on closed connection %s", self.handle)
            return

        frame = await self._parse(SocketFrame, raw if isinstance(raw, dict) else {})
        if frame is None:
            return

        if frame.event == ChatEvent.JOIN.value:
            await self.on_join(frame.data)
            return

        handler = self._handlers.get(frame.event)
        if handler is None:
            await self._error(f"Unknown event: {frame.event}")
            return

        task = asyncio.create_task(self._run(frame.event, handler, frame.data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(
        self,
        event: str,
        handler: Callable[[dict[str, Any]], Awaitable[None]],
        data: dict[str, Any],
    ) -> None:
        try:
            await handler(data)
        except ChatError as exc:
            # The router has already answered the origin connection.
            logger.debug("%s on %s failed: %s", event, self.handle, exc)
        except Exception as exc:
            logger.error("Unhandled error in %s on %s: %s", event, self.handle, exc, exc_info=True)

    async def drain(self) -> None:
        """Wait for every in-flight event of this connection."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def on_join(self, data: dict[str, Any]) -> None:
        payload = await self._parse(JoinPayload, data)
        if payload is None:
            return
        await self._presence.register(self.handle, payload.user_id)
        self.user_id = payload.user_id
        self.state = SessionState.JOINED
        logger.info("User connected: %s on %s", payload.user_id, self.handle)

    async def on_send_message(self, data: dict[str, Any]) -> None:
        payload = await self._parse(SendMessagePayload, data)
        if payload is None or not await self._check_identity(payload.user_id):
            return
        await self._router.send(
            payload.user_id,
            payload.receiver_id,
            payload.message_type,
            payload.content,
            payload.media_url,
            origin=self.handle,
        )

    async def on_read_message(self, data: dict[str, Any]) -> None:
        payload = await self._parse(MessageRefPayload, data)
        if payload is None or not await self._check_identity(payload.user_id):
            return
        await self._router.read(payload.message_id, payload.user_id, origin=self.handle)

    async def on_delete_message(self, data: dict[str, Any]) -> None:
        payload = await self._parse(MessageRefPayload, data)
        if payload is None or not await self._check_identity(payload.user_id):
            return
        await self._router.delete(payload.message_id, payload.user_id, origin=self.handle)

    async def on_typing(self, data: dict[str, Any]) -> None:
        payload = await self._parse(TypingPayload, data)
        if payload is None or not await self._check_identity(payload.user_id):
            return
        await self._router.typing(payload.user_id, payload.receiver_id, payload.is_typing)

    async def close(self) -> None:
        """Handle transport close: forget this handle, then let in-flight work finish."""
        if self.state is SessionState.DISCONNECTED:
            return
        self.state = SessionState.DISCONNECTED
        self._hub.detach(self.handle)
        user_id = await self._presence.unregister(self.handle)
        if user_id is not None:
            logger.info("User %s disconnected from %s", user_id, self.handle)
        await self.drain()
