"""
Pydantic schemas for API request/response models.

These schemas define the structure of API and socket data for serialization and validation.
"""

from .common import ApiResponse
from .message import (
    ConversationOut,
    JoinPayload,
    MessageOut,
    MessageRefPayload,
    PublicProfile,
    SendMessagePayload,
    SocketFrame,
    TypingPayload,
)

__all__ = [
    "ApiResponse",
    "ConversationOut", "MessageOut", "PublicProfile",
    "JoinPayload", "SendMessagePayload", "MessageRefPayload", "TypingPayload",
    "SocketFrame",
]
