"""Query cache: a key → server-response store with prefix invalidation.

READ-THROUGH
-------------
  fetch(key, loader):  cache hit  → return the stored body
                       cache miss → await loader() → store → return

Entries expire after ``ttl_seconds`` (the "stale time").  A TTL of zero
means the query is always considered stale and is never stored.

INVALIDATION
-------------
After a mutation succeeds, the caller invalidates every key prefix the
mutation could have changed.  Invalidation only ever follows a confirmed
success; nothing is dropped speculatively before a call.

Writes are last-write-wins.  Two overlapping fetches for the same key
both store their result and the later one stays.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Protocol, runtime_checkable

from prep_tracker.core.metrics import QUERY_CACHE_OPERATIONS

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]


@runtime_checkable
class QueryCache(Protocol):
    async def get(self, key: str) -> Any | None:
        """Return the cached body for ``key``, or None on miss/expiry."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...

    async def invalidate(self, prefix: str) -> None:
        """Drop every entry whose key starts with ``prefix``."""
        ...

    async def fetch(self, key: str, loader: Loader, ttl_seconds: int) -> Any:
        ...

    async def invalidate_all(self, prefixes: Iterable[str]) -> None:
        ...


class _ReadThroughMixin:
    """fetch()/invalidate_all() on top of get/set/invalidate."""

    async def fetch(self, key: str, loader: Loader, ttl_seconds: int) -> Any:
        cached = await self.get(key)  # type: ignore[attr-defined]
        if cached is not None:
            QUERY_CACHE_OPERATIONS.labels(operation="hit").inc()
            return cached

        QUERY_CACHE_OPERATIONS.labels(operation="miss").inc()
        value = await loader()
        await self.set(key, value, ttl_seconds)  # type: ignore[attr-defined]
        return value

    async def invalidate_all(self, prefixes: Iterable[str]) -> None:
        for prefix in prefixes:
            await self.invalidate(prefix)  # type: ignore[attr-defined]


class InMemoryQueryCache(_ReadThroughMixin):
    """Per-process cache.

    ``monotonic`` is injectable so tests can expire entries without sleeping.
    """

    def __init__(self, monotonic: Callable[[], float] = time.monotonic) -> None:
        self._monotonic = monotonic
        self._store: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        expires_at, raw = entry
        if self._monotonic() >= expires_at:
            del self._store[key]
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        self._store[key] = (self._monotonic() + ttl_seconds, json.dumps(value))

    async def invalidate(self, prefix: str) -> None:
        QUERY_CACHE_OPERATIONS.labels(operation="invalidate").inc()
        stale = [k for k in self._store if k.startswith(prefix)]
        for k in stale:
            del self._store[k]
        logger.debug("Invalidated %d cached queries under %s", len(stale), prefix)

    def keys(self) -> list[str]:
        return list(self._store)


class RedisQueryCache(_ReadThroughMixin):
    """Redis-backed cache shared across client processes."""

    # Key prefix keeps query entries apart from anything else in the database.
    _PREFIX = "query:"

    def __init__(self, redis_client, namespace: str = "") -> None:
        self._redis = redis_client
        self._ns = f"{self._PREFIX}{namespace}:" if namespace else self._PREFIX

    async def get(self, key: str) -> Any | None:
        raw = await self._redis.get(f"{self._ns}{key}")
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        await self._redis.setex(f"{self._ns}{key}", ttl_seconds, json.dumps(value))

    async def invalidate(self, prefix: str) -> None:
        QUERY_CACHE_OPERATIONS.labels(operation="invalidate").inc()
        # SCAN, not KEYS: cursor-based, so Redis keeps serving other
        # commands between batches.
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._ns}{prefix}*", count=100
            )
            if keys:
                await self._redis.delete(*keys)
            if cursor == 0:
                break


def build_query_cache(redis_client=None, namespace: str = "") -> QueryCache:
    """Redis-backed when a client is given, in-memory otherwise."""
    if redis_client is not None:
        return RedisQueryCache(redis_client, namespace=namespace)
    return InMemoryQueryCache()
