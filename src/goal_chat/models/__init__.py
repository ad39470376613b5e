# src/goal_chat/models/__init__.py
"""SQLAlchemy models for the goal-chat service."""

from .message import Message, MessageStatus, MessageType, can_transition, conversation_id_for
from .user import StoredFile, UserProfile

__all__ = [
    "Message", "MessageStatus", "MessageType",
    "can_transition", "conversation_id_for",
    "StoredFile", "UserProfile",
]
