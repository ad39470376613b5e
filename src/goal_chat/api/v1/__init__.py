"""Version 1 API endpoints."""

from .endpoints import chat_router

__all__ = [
    "chat_router",
]
