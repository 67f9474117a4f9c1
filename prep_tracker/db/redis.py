"""Redis connection management.

When REDIS_URL is configured the query cache is shared through Redis, so
several client processes for the same user (the companion worker and an
interactive session, say) see one another's invalidations.  When it is
None (local dev, tests) the query cache stays in process memory and no
Redis server is needed.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from prep_tracker.core.config import SETTINGS

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Conditional Redis client (None when REDIS_URL is not set)
# ---------------------------------------------------------------------------
# Consumers check for None and fall back to the in-memory query cache.


def _connect(redis_url: str) -> aioredis.Redis:  # type: ignore[type-arg]
    return aioredis.from_url(
        redis_url,
        decode_responses=True,  # str instead of bytes
        max_connections=10,
    )


redis_pool: aioredis.Redis | None = (  # type: ignore[type-arg]
    _connect(SETTINGS.redis_url) if SETTINGS.redis_url else None
)


@asynccontextmanager
async def lifespan_redis(
    redis_url: str | None = SETTINGS.redis_url,
) -> AsyncIterator[aioredis.Redis | None]:
    """Verify connectivity on startup and release the pool on shutdown.

    ``redis_url`` defaults to the process settings; the shared module pool
    is reused when it matches.  Yields the pool, or None when Redis is not
    configured or unreachable; callers fall back to the in-memory cache in
    both cases.
    """
    if not redis_url:
        logger.info("No REDIS_URL configured; query cache is in-memory")
        yield None
        return

    if redis_pool is not None and redis_url == SETTINGS.redis_url:
        pool = redis_pool
    else:
        pool = _connect(redis_url)

    try:
        await pool.ping()  # type: ignore[misc]  # redis stubs mistype async ping as bool
        logger.info("Redis connected: %s", redis_url)
    except aioredis.RedisError:
        logger.exception("Redis connection failed on startup")
        await pool.aclose()
        yield None
        return

    try:
        yield pool
    finally:
        await pool.aclose()
        logger.info("Redis connection pool closed")
