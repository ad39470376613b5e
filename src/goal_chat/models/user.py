"""Read-only projections of the user directory and file store."""

from __future__ import annotations

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from goal_chat.db.session import Base


class StoredFile(Base):
    """Uploaded file metadata; ``location`` is relative to the file base URL."""

    __tablename__ = "stored_file"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    location: Mapped[str] = mapped_column(Text, nullable=False)


class UserProfile(Base):
    """Public profile fields the chat core shows next to a conversation."""

    __tablename__ = "user_profile"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_file_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("stored_file.id", ondelete="SET NULL"), nullable=True
    )

    avatar: Mapped[StoredFile | None] = relationship("StoredFile", lazy="joined")
