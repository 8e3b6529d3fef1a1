"""
Redis connection pool management.

A single async pool is shared by the outbox processor and the health
checks. It is created lazily on first use and closed on shutdown.
"""

from __future__ import annotations

import asyncio
import threading

import redis.asyncio as redis

from shared.config.settings import settings, REDIS_URL
from shared.config.logging import get_logger

logger = get_logger(__name__)

_redis_pool: redis.Redis | None = None
_redis_pool_lock: asyncio.Lock | None = None
_pool_lock_init = threading.Lock()


def _get_pool_lock() -> asyncio.Lock:
    """Create the asyncio lock lazily so it binds to the running loop."""
    global _redis_pool_lock
    if _redis_pool_lock is None:
        with _pool_lock_init:
            if _redis_pool_lock is None:
                _redis_pool_lock = asyncio.Lock()
    return _redis_pool_lock


async def get_redis_pool() -> redis.Redis:
    """Get or create the Redis connection pool singleton."""
    global _redis_pool

    if _redis_pool is not None:
        return _redis_pool

    async with _get_pool_lock():
        # Another coroutine may have initialized it while we waited
        if _redis_pool is None:
            _redis_pool = redis.from_url(
                REDIS_URL,
                max_connections=settings.redis_pool_max_connections,
                decode_responses=True,
                socket_connect_timeout=settings.redis_socket_timeout,
                socket_timeout=settings.redis_socket_timeout,
                health_check_interval=30,
            )
            logger.info(
                "Redis async pool initialized",
                max_connections=settings.redis_pool_max_connections,
                timeout=settings.redis_socket_timeout,
            )
    return _redis_pool


async def check_redis_health() -> dict:
    """Ping Redis and report latency; never raises."""
    loop = asyncio.get_running_loop()
    started = loop.time()
    try:
        pool = await get_redis_pool()
        await asyncio.wait_for(pool.ping(), timeout=3.0)
    except Exception as e:
        return {"status": "unhealthy", "error": str(e) or type(e).__name__}
    return {"status": "healthy", "latency_ms": round((loop.time() - started) * 1000, 2)}


async def close_redis_pool() -> None:
    """Close Redis connections on application shutdown."""
    global _redis_pool, _redis_pool_lock

    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
        logger.info("Redis async pool closed")
    _redis_pool_lock = None
