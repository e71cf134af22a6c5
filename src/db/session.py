"""Backend connection management."""

import logging
from typing import Optional

from src.config import Settings, get_settings
from src.db.backend import InMemoryBackend, KeyValueBackend, RedisBackend

logger = logging.getLogger(__name__)

_backend: Optional[KeyValueBackend] = None


def create_backend(settings: Optional[Settings] = None) -> KeyValueBackend:
    """Build a new backend from settings."""
    settings = settings or get_settings()
    if settings.storage_backend == "memory":
        return InMemoryBackend()
    return RedisBackend.from_url(settings.redis_url)


async def init_backend() -> KeyValueBackend:
    """Create the shared backend and verify it is reachable."""
    global _backend
    if _backend is None:
        _backend = create_backend()

    if not await _backend.ping():
        raise ConnectionError("Key-value backend is not reachable")

    return _backend


async def close_backend() -> None:
    """Close the shared backend, if one was created."""
    global _backend
    if _backend is not None:
        await _backend.close()
        _backend = None


async def get_backend() -> KeyValueBackend:
    """FastAPI dependency yielding the shared backend."""
    global _backend
    if _backend is None:
        _backend = create_backend()
    return _backend
