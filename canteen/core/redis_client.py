"""
Canteen Service — Redis connection shared by the login rate limiter and the
checkout idempotency cache.
"""
import asyncio

import redis.asyncio as aioredis

from canteen.core.config import get_settings

settings = get_settings()

_pool: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis:
    global _pool
    if _pool is None:
        _pool = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=settings.HEALTH_CHECK_TIMEOUT,
        )
    return _pool


async def ping_redis() -> None:
    """Raise if Redis does not answer within the health-check timeout."""
    await asyncio.wait_for(get_redis().ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)


async def close_redis() -> None:
    global _pool
    if _pool is not None:
        await _pool.aclose()
        _pool = None
