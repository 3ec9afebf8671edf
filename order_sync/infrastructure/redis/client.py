from __future__ import annotations

import redis.asyncio as aioredis
from redis import Redis

from order_sync.shared.config import Settings

_client: Redis | None = None
_async_client: aioredis.Redis | None = None


def init_redis(settings: Settings) -> None:
    global _client, _async_client
    _client = Redis.from_url(settings.redis_url, decode_responses=True, socket_timeout=2.0)
    _async_client = aioredis.from_url(settings.redis_url, decode_responses=True, socket_timeout=2.0)


def get_redis() -> Redis:
    if _client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _client


def get_async_redis() -> aioredis.Redis:
    """Client for calls made on the event loop (purchase dedupe)."""
    if _async_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _async_client


async def close_redis() -> None:
    global _async_client
    if _async_client is not None:
        await _async_client.aclose()
        _async_client = None
