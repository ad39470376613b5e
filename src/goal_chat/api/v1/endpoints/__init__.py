"""API endpoint modules for version 1."""

from .chat import router as chat_router

__all__ = [
    "chat_router",
]
