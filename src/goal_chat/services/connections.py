"""Live connection bookkeeping and event fan-out."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Protocol

from fastapi import WebSocket

from goal_chat.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """Transport able to push one named event to a client."""

    async def send(self, event: str, data: Mapping[str, Any]) -> None:
        """Push ``event`` with ``data`` to the client."""
        ...


class WebSocketConnection:
    """Adapts a FastAPI WebSocket to the ``Connection`` protocol.

    Frames are JSON objects of the form ``{"event": ..., "data": {...}}``.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self._send_lock = asyncio.Lock()

    async def send(self, event: str, data: Mapping[str, Any]) -> None:
        frame = {"event": str(getattr(event, "value", event)), "data": dict(data)}
        async with self._send_lock:
            await self.websocket.send_json(frame)


class ConnectionHub:
    """Maps connection handles owned by this process to their transports.

    Presence answers *who* is online; the hub answers *how* to reach a
    handle. Handles known to presence but not to this hub live in another
    process and are skipped.
    """

    def __init__(self, presence: PresenceRegistry) -> None:
        self._presence = presence
        self._connections: dict[str, Connection] = {}

    def attach(self, handle: str, connection: Connection) -> None:
        """Start tracking a live transport."""
        self._connections[handle] = connection

    def detach(self, handle: str) -> None:
        """Forget a transport; no-op if unknown."""
        self._connections.pop(handle, None)

    def get(self, handle: str) -> Connection | None:
        """Return the transport for ``handle`` if it lives here."""
        return self._connections.get(handle)

    def __len__(self) -> int:
        return len(self._connections)

    async def _send(
        self, handle: str, connection: Connection, event: str, data: Mapping[str, Any]
    ) -> bool:
        try:
            await connection.send(event, data)
            return True
        except Exception as exc:
            logger.warning("Dropping connection %s after failed %s push: %s", handle, event, exc)
            self.detach(handle)
            await self._presence.unregister(handle)
            return False

    async def emit(self, handle: str, event: str, data: Mapping[str, Any]) -> bool:
        """Push an event to a single handle; returns False if it could not be reached."""
        connection = self._connections.get(handle)
        if connection is None:
            return False
        return await self._send(handle, connection, event, data)

    async def emit_to_user(self, user_id: str, event: str, data: Mapping[str, Any]) -> int:
        """Push an event to every local connection of ``user_id``.

        Returns:
            Number of connections that accepted the event.
        """
        handles = await self._presence.connections_for(user_id)
        targets = [
            (handle, connection)
            for handle in sorted(handles)
            if (connection := self._connections.get(handle)) is not None
        ]
        if not targets:
            return 0
        results = await asyncio.gather(
            *(self._send(handle, connection, event, data) for handle, connection in targets)
        )
        return sum(1 for delivered in results if delivered)
