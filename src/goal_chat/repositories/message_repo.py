"""Data access helpers for working with chat messages."""
from __future__ import annotations

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from goal_chat.models.message import Message

__all__ = ["MessageRepository"]


class MessageRepository:
    """Thin wrapper around database access for message entities.

    List queries never filter soft-deleted rows implicitly; callers pass
    ``include_deleted`` explicitly.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository with an async SQLAlchemy session."""
        self.session = session

    async def get_by_id(self, message_id: str) -> Message | None:
        """Return a message by identifier."""
        return await self.session.get(Message, message_id)

    async def add(self, message: Message) -> Message:
        """Stage a new message and flush it so store defaults are assigned."""
        self.session.add(message)
        await self.session.flush()
        return message

    async def recent_heads_for(
        self,
        user_id: str,
        *,
        skip: int,
        limit: int,
        include_deleted: bool = False,
    ) -> list[tuple[Message, str]]:
        """Return the newest message per counterpart of ``user_id``.

        Rows come back as ``(message, counterpart_id)`` ordered by the
        message's creation time, newest first, with the message id breaking
        ties.
        """
        counterpart = case(
            (Message.sender_id == user_id, Message.receiver_id),
            else_=Message.sender_id,
        )
        rank = func.row_number().over(
            partition_by=counterpart,
            order_by=(Message.created_at.desc(), Message.id.desc()),
        )

        heads = select(
            Message.id.label("message_id"),
            counterpart.label("counterpart_id"),
            rank.label("rank"),
        ).where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
        if not include_deleted:
            heads = heads.where(Message.deleted_at.is_(None))
        heads_sq = heads.subquery()

        stmt = (
            select(Message, heads_sq.c.counterpart_id)
            .join(heads_sq, Message.id == heads_sq.c.message_id)
            .where(heads_sq.c.rank == 1)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [(message, counterpart_id) for message, counterpart_id in result.all()]

    async def between(
        self,
        user_id: str,
        counterpart_id: str,
        *,
        skip: int,
        limit: int,
        include_deleted: bool = False,
    ) -> list[Message]:
        """Return messages exchanged by two users in either direction, newest first."""
        stmt = select(Message).where(
            or_(
                and_(Message.sender_id == user_id, Message.receiver_id == counterpart_id),
                and_(Message.sender_id == counterpart_id, Message.receiver_id == user_id),
            )
        )
        if not include_deleted:
            stmt = stmt.where(Message.deleted_at.is_(None))
        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars())
