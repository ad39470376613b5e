"""create chat tables

Revision ID: 4c1a9e2f7b10
Revises:
Create Date: 2026-10-19 15:40:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "4c1a9e2f7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create message, profile and file tables."""
    op.create_table(
        "stored_file",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("location", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "user_profile",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("avatar_file_id", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(["avatar_file_id"], ["stored_file.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "chat_message",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("sender_id", sa.String(length=64), nullable=False),
        sa.Column("receiver_id", sa.String(length=64), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("message_type", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_chat_message_sender_receiver", "chat_message", ["sender_id", "receiver_id"]
    )
    op.create_index(
        "ix_chat_message_receiver_sender", "chat_message", ["receiver_id", "sender_id"]
    )
    op.create_index("ix_chat_message_created_at", "chat_message", ["created_at"])


def downgrade() -> None:
    """Drop the chat tables."""
    op.drop_index("ix_chat_message_created_at", table_name="chat_message")
    op.drop_index("ix_chat_message_receiver_sender", table_name="chat_message")
    op.drop_index("ix_chat_message_sender_receiver", table_name="chat_message")
    op.drop_table("chat_message")
    op.drop_table("user_profile")
    op.drop_table("stored_file")
