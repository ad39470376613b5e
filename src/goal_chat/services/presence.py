"""Presence tracking for live chat connections.

The registry maps connection handles to user ids. A user is present while
at least one handle points at them. Handlers never touch the maps directly;
they go through ``register``/``unregister``/``is_present``/``connections_for``
so the backend can be swapped for a shared one when several processes serve
sockets.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict

from redis import asyncio as aioredis

from goal_chat.core.settings import Settings

logger = logging.getLogger(__name__)


class PresenceRegistry(ABC):
    """Contract shared by presence backends."""

    @abstractmethod
    async def register(self, handle: str, user_id: str) -> None:
        """Bind ``handle`` to ``user_id``, replacing any earlier binding of the handle."""

    @abstractmethod
    async def unregister(self, handle: str) -> str | None:
        """Drop ``handle`` and return the user it was bound to, if any."""

    @abstractmethod
    async def is_present(self, user_id: str) -> bool:
        """Return True if any live handle is bound to ``user_id``."""

    @abstractmethod
    async def connections_for(self, user_id: str) -> set[str]:
        """Return the handles bound to ``user_id``."""

    @abstractmethod
    async def user_for(self, handle: str) -> str | None:
        """Return the user bound to ``handle``."""

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryPresenceRegistry(PresenceRegistry):
    """Process-local registry; all presence is lost on restart."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._user_by_handle: dict[str, str] = {}
        self._handles_by_user: defaultdict[str, set[str]] = defaultdict(set)

    def _detach(self, handle: str) -> str | None:
        previous = self._user_by_handle.pop(handle, None)
        if previous is not None:
            handles = self._handles_by_user.get(previous)
            if handles is not None:
                handles.discard(handle)
                if not handles:
                    del self._handles_by_user[previous]
        return previous

    async def register(self, handle: str, user_id: str) -> None:
        async with self._lock:
            self._detach(handle)
            self._user_by_handle[handle] = user_id
            self._handles_by_user[user_id].add(handle)

    async def unregister(self, handle: str) -> str | None:
        async with self._lock:
            return self._detach(handle)

    async def is_present(self, user_id: str) -> bool:
        async with self._lock:
            return bool(self._handles_by_user.get(user_id))

    async def connections_for(self, user_id: str) -> set[str]:
        async with self._lock:
            return set(self._handles_by_user.get(user_id, ()))

    async def user_for(self, handle: str) -> str | None:
        async with self._lock:
            return self._user_by_handle.get(handle)


# Both scripts run atomically inside Redis so a handle is never bound twice.
_REGISTER_SCRIPT = """
local previous = redis.call('HGET', KEYS[1], ARGV[1])
if previous then
    redis.call('SREM', ARGV[3] .. previous, ARGV[1])
end
redis.call('HSET', KEYS[1], ARGV[1], ARGV[2])
redis.call('SADD', ARGV[3] .. ARGV[2], ARGV[1])
return previous
"""

_UNREGISTER_SCRIPT = """
local previous = redis.call('HGET', KEYS[1], ARGV[1])
if previous then
    redis.call('HDEL', KEYS[1], ARGV[1])
    redis.call('SREM', ARGV[2] .. previous, ARGV[1])
end
return previous
"""


class RedisPresenceRegistry(PresenceRegistry):
    """Registry shared between processes through Redis.

    Handles must be globally unique across processes. Knowing that a handle
    lives in another process does not make it deliverable from this one.
    """

    def __init__(self, client: aioredis.Redis, key_prefix: str = "chat:presence") -> None:
        self._redis = client
        self._handles_key = f"{key_prefix}:handles"
        self._user_key_prefix = f"{key_prefix}:user:"
        self._register = client.register_script(_REGISTER_SCRIPT)
        self._unregister = client.register_script(_UNREGISTER_SCRIPT)

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "chat:presence") -> RedisPresenceRegistry:
        """Build a registry with its own connection pool."""
        return cls(aioredis.from_url(url, decode_responses=True), key_prefix)

    def _user_key(self, user_id: str) -> str:
        return f"{self._user_key_prefix}{user_id}"

    async def register(self, handle: str, user_id: str) -> None:
        await self._register(
            keys=[self._handles_key],
            args=[handle, user_id, self._user_key_prefix],
        )

    async def unregister(self, handle: str) -> str | None:
        previous = await self._unregister(
            keys=[self._handles_key],
            args=[handle, self._user_key_prefix],
        )
        return _as_text(previous)

    async def is_present(self, user_id: str) -> bool:
        return int(await self._redis.scard(self._user_key(user_id))) > 0

    async def connections_for(self, user_id: str) -> set[str]:
        members = await self._redis.smembers(self._user_key(user_id))
        return {text for text in (_as_text(member) for member in members) if text}

    async def user_for(self, handle: str) -> str | None:
        return _as_text(await self._redis.hget(self._handles_key, handle))

    async def close(self) -> None:
        await self._redis.aclose()


def _as_text(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


def build_presence_registry(config: Settings) -> PresenceRegistry:
    """Return the presence backend selected by ``PRESENCE_BACKEND``."""
    backend = config.presence_backend.lower()
    if backend == "redis":
        logger.info("Using Redis presence registry at %s", config.redis_url)
        return RedisPresenceRegistry.from_url(config.redis_url, config.presence_key_prefix)
    if backend != "memory":
        raise ValueError(f"Unknown presence backend: {config.presence_backend!r}")
    return InMemoryPresenceRegistry()
