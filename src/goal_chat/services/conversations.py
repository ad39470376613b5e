"""Read-only conversation projections over stored messages."""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from goal_chat.core.errors import StoreUnavailableError, ValidationError
from goal_chat.models.message import Message
from goal_chat.repositories.message_repo import MessageRepository
from goal_chat.schemas.message import ConversationOut, MessageOut, PublicProfile
from goal_chat.services.profiles import ProfileDirectory


def _offset(page: int, limit: int) -> int:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    return (page - 1) * limit


class ConversationQueryEngine:
    """Derives recent conversations and paginated history.

    Reads are not isolated from concurrent sends; a message stored while a
    query runs may or may not be included.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        profiles: ProfileDirectory,
    ) -> None:
        self._session_factory = session_factory
        self._profiles = profiles

    async def recent_conversations(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        *,
        include_deleted: bool = False,
    ) -> list[ConversationOut]:
        """Return one entry per counterpart carrying the latest message."""
        skip = _offset(page, limit)
        try:
            async with self._session_factory() as session:
                heads = await MessageRepository(session).recent_heads_for(
                    user_id, skip=skip, limit=limit, include_deleted=include_deleted
                )
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Failed to fetch conversations") from exc

        profiles = await self._profiles.get_profiles(counterpart for _, counterpart in heads)
        return [
            ConversationOut(
                counterpart=profiles.get(counterpart) or PublicProfile(id=counterpart),
                last_message=MessageOut.model_validate(message),
            )
            for message, counterpart in heads
        ]

    async def history(
        self,
        user_id: str,
        counterpart_id: str,
        page: int = 1,
        limit: int = 20,
        *,
        include_deleted: bool = False,
    ) -> list[Message]:
        """Return messages between two users, newest first."""
        skip = _offset(page, limit)
        try:
            async with self._session_factory() as session:
                return await MessageRepository(session).between(
                    user_id,
                    counterpart_id,
                    skip=skip,
                    limit=limit,
                    include_deleted=include_deleted,
                )
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Failed to fetch chat history") from exc
