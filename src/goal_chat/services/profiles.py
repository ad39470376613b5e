"""Profile lookups used to decorate conversations."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from goal_chat.core.errors import StoreUnavailableError
from goal_chat.models.user import UserProfile
from goal_chat.schemas.message import PublicProfile


class ProfileDirectory(Protocol):
    """Read-only source of public profile projections."""

    async def get_profiles(self, user_ids: Iterable[str]) -> dict[str, PublicProfile]:
        """Return profiles keyed by user id; unknown ids are simply absent."""
        ...


def build_avatar_url(file_base_url: str, location: str | None) -> str | None:
    """Join the file base URL and a stored file location."""
    if not location:
        return None
    return f"{file_base_url}{location}"


class SqlProfileDirectory:
    """Profile lookup backed by the ``user_profile`` and ``stored_file`` tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        file_base_url: str = "",
    ) -> None:
        self._session_factory = session_factory
        self._file_base_url = file_base_url

    async def get_profiles(self, user_ids: Iterable[str]) -> dict[str, PublicProfile]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}

        try:
            async with self._session_factory() as session:
                result = await session.execute(select(UserProfile).where(UserProfile.id.in_(ids)))
                users = list(result.unique().scalars())
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Failed to load profiles") from exc

        return {
            user.id: PublicProfile(
                id=user.id,
                username=user.username,
                avatar_url=build_avatar_url(
                    self._file_base_url, user.avatar.location if user.avatar else None
                ),
            )
            for user in users
        }
