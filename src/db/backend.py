"""Key-value backends used by the transcription store."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class KeyValueBackend(ABC):
    """Untyped string key-value storage with optional per-key TTL."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value stored at key, or None."""

    @abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Store value at key, replacing any previous value and TTL."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. Missing keys are ignored."""

    @abstractmethod
    async def scan_keys_by_prefix(self, prefix: str) -> list[str]:
        """Return a snapshot of all keys starting with prefix."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class RedisBackend(KeyValueBackend):
    """Backend on a Redis server via redis.asyncio."""

    def __init__(self, client: redis.Redis, scan_count: int = 500):
        self._client = client
        self._scan_count = scan_count

    @classmethod
    def from_url(cls, url: str) -> "RedisBackend":
        return cls(redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        if ttl_seconds is not None:
            await self._client.set(key, value, ex=max(int(ttl_seconds), 1))
        else:
            await self._client.set(key, value)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def scan_keys_by_prefix(self, prefix: str) -> list[str]:
        keys = []
        async for key in self._client.scan_iter(match=f"{prefix}*", count=self._scan_count):
            if key.startswith(prefix):
                keys.append(key)
        return keys

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()


class InMemoryBackend(KeyValueBackend):
    """
    Process-local backend for tests and local development.

    TTLs are honored lazily: expired keys are dropped when read or scanned.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: dict[str, str] = {}
        self._expires: dict[str, float] = {}

    def _evict_if_expired(self, key: str) -> None:
        deadline = self._expires.get(key)
        if deadline is not None and deadline <= self._clock():
            self._data.pop(key, None)
            self._expires.pop(key, None)

    async def get(self, key: str) -> Optional[str]:
        self._evict_if_expired(key)
        return self._data.get(key)

    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        self._data[key] = value
        if ttl_seconds is not None:
            self._expires[key] = self._clock() + max(int(ttl_seconds), 1)
        else:
            self._expires.pop(key, None)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)
        self._expires.pop(key, None)

    async def scan_keys_by_prefix(self, prefix: str) -> list[str]:
        for key in list(self._expires):
            self._evict_if_expired(key)
        return [key for key in self._data if key.startswith(prefix)]

    def ttl(self, key: str) -> Optional[float]:
        """Remaining lifetime of key in seconds, or None if it has no TTL."""
        deadline = self._expires.get(key)
        if deadline is None:
            return None
        return deadline - self._clock()
