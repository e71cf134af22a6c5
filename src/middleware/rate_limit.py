"""Rate limiting middleware using SlowAPI."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from src.config import get_settings

settings = get_settings()


def get_user_id_or_ip(request: Request) -> str:
    """
    Get rate limit key from the X-User-Id header or IP address.

    Uses the user ID if present, falls back to IP address.
    """
    user_id = request.headers.get("X-User-Id")
    if user_id:
        return f"user:{user_id}"

    return f"ip:{get_remote_address(request)}"


def _storage_uri() -> str:
    if settings.storage_backend == "memory":
        return "memory://"
    return settings.redis_url


# Counters share the Redis server that holds the transcriptions
limiter = Limiter(
    key_func=get_user_id_or_ip,
    storage_uri=_storage_uri(),
    strategy="fixed-window",
)


def rate_limit_uploads():
    """Rate limit for transcription uploads."""
    return limiter.limit(
        f"{settings.rate_limit_per_minute}/minute;{settings.rate_limit_per_hour}/hour",
        key_func=get_user_id_or_ip,
    )


def rate_limit_general():
    """Rate limit for read endpoints."""
    return limiter.limit(
        f"{settings.rate_limit_per_minute * 2}/minute",
        key_func=get_user_id_or_ip,
    )
