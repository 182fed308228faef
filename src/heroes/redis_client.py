"""Optional Redis connection.

Redis only backs rate limiting and the readiness probe. With
``HH_REDIS_ENABLED=false`` the client is never created and callers receive
``None`` from :func:`current_redis`.
"""

import redis.asyncio as redis

from heroes.config import Settings

_client: redis.Redis | None = None


async def init_redis(settings: Settings) -> redis.Redis | None:
    global _client  # noqa: PLW0603
    if not settings.redis_enabled:
        _client = None
        return None
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    return _client


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def current_redis() -> redis.Redis | None:
    """The shared client, or None when Redis is disabled or not yet initialized."""
    return _client
