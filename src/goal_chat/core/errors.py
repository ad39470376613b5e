"""Exception hierarchy shared by the chat services."""

from __future__ import annotations


class ChatError(RuntimeError):
    """Base exception raised for chat core failures."""


class ValidationError(ChatError):
    """Raised when a message payload or state change is malformed.

    These are user-correctable and are reported back to the acting
    connection verbatim.
    """


class InvalidTransitionError(ValidationError):
    """Raised when a status change would move a message backwards."""


class MessageNotFoundError(ChatError):
    """Raised when a message id does not resolve to a stored message."""

    def __init__(self, message_id: str) -> None:
        super().__init__(f"Message not found: {message_id}")
        self.message_id = message_id


class StoreUnavailableError(ChatError):
    """Raised when the persistence layer fails."""


class NotificationSinkError(ChatError):
    """Raised when the notification service rejects or drops a request."""
