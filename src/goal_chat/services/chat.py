"""Wiring of the chat components into one process-wide bundle."""

from __future__ import annotations

import secrets
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from goal_chat.core.settings import Settings, settings
from goal_chat.services.connections import Connection, ConnectionHub
from goal_chat.services.conversations import ConversationQueryEngine
from goal_chat.services.delivery import DeliveryRouter
from goal_chat.services.message_store import MessageStore
from goal_chat.services.notifications import NotificationSink, build_notification_sink
from goal_chat.services.presence import PresenceRegistry, build_presence_registry
from goal_chat.services.profiles import ProfileDirectory, SqlProfileDirectory
from goal_chat.services.session import ChatSession


@dataclass
class ChatServices:
    """Every shared chat component for one process."""

    config: Settings
    store: MessageStore
    conversations: ConversationQueryEngine
    presence: PresenceRegistry
    hub: ConnectionHub
    notifications: NotificationSink
    router: DeliveryRouter

    def open_session(self, connection: Connection, handle: str | None = None) -> ChatSession:
        """Create the session object for a freshly accepted connection."""
        return ChatSession(
            handle or secrets.token_urlsafe(12),
            connection,
            router=self.router,
            presence=self.presence,
            hub=self.hub,
            enforce_bound_identity=self.config.enforce_bound_identity,
        )

    async def close(self) -> None:
        """Release outbound clients."""
        await self.notifications.close()
        await self.presence.close()


def build_chat_services(
    config: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    presence: PresenceRegistry | None = None,
    notifications: NotificationSink | None = None,
    profiles: ProfileDirectory | None = None,
) -> ChatServices:
    """Assemble the chat components; any port may be replaced by a test double."""
    presence = presence or build_presence_registry(config)
    notifications = notifications or build_notification_sink(config)
    profiles = profiles or SqlProfileDirectory(session_factory, config.file_base_url)

    store = MessageStore(session_factory)
    hub = ConnectionHub(presence)
    router = DeliveryRouter(
        store,
        presence,
        hub,
        notifications,
        notification_timeout=float(config.notification_timeout_seconds),
        surface_read_errors=config.surface_read_errors,
    )
    return ChatServices(
        config=config,
        store=store,
        conversations=ConversationQueryEngine(session_factory, profiles),
        presence=presence,
        hub=hub,
        notifications=notifications,
        router=router,
    )


class _ChatServicesSingleton:
    """Singleton wrapper for ChatServices."""

    _instance: ChatServices | None = None

    @classmethod
    def get_instance(cls) -> ChatServices:
        """Get or create the process-wide chat services."""
        if cls._instance is None:
            from goal_chat.db.session import AsyncSessionLocal

            cls._instance = build_chat_services(settings, AsyncSessionLocal)
        return cls._instance

    @classmethod
    def reset(cls) -> ChatServices | None:
        """Drop the cached instance and return it so the caller can close it."""
        instance, cls._instance = cls._instance, None
        return instance


def get_chat_services() -> ChatServices:
    """Return the process-wide chat services."""
    return _ChatServicesSingleton.get_instance()


def reset_chat_services() -> ChatServices | None:
    """Forget the process-wide chat services."""
    return _ChatServicesSingleton.reset()
