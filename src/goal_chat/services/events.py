"""Names of the events exchanged over the chat socket."""

from __future__ import annotations

from enum import Enum


class ChatEvent(str, Enum):
    """Inbound and outbound socket event names."""

    JOIN = "join"
    SEND_MESSAGE = "send_message"
    RECEIVE_MESSAGE = "receive_message"
    MESSAGE_SENT = "message_sent"
    READ_MESSAGE = "read_message"
    MESSAGE_READ = "message_read"
    DELETE_MESSAGE = "delete_message"
    MESSAGE_DELETED = "message_deleted"
    TYPING = "typing"
    USER_TYPING = "user_typing"
    ERROR = "error"


SEND_FAILED = "Failed to send message"
READ_FAILED = "Failed to mark message as read"
DELETE_FAILED = "Failed to delete message"
