# src/cache/redis_store.py — v3
"""Redis-based cache store (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis. Uses the asyncio client
(redis.asyncio) so no call blocks the event loop.
Suitable for distributed/multi-instance deployments. Expiry is native
(SET ... PX); capacity is left to the server's maxmemory policy.
"""

from __future__ import annotations

import logging
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

from nutriresolve.cache.base_cache_store import BaseCacheStore
from nutriresolve.cache.models import CacheStats

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_KEY_PREFIX = "nutriresolve:"


class RedisCacheStore(BaseCacheStore[M], Generic[M]):
    """Redis-backed store for pydantic values.

    Args:
        redis_url: Connection URL.
        name: Logical cache name; namespaces keys.
        model: Pydantic model class values are decoded into.
        default_ttl: TTL in seconds when set() gets no ttl.
    """

    def __init__(
        self,
        redis_url: str,
        name: str,
        model: type[M],
        default_ttl: float,
    ) -> None:
        try:
            from redis import asyncio as aioredis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = aioredis.Redis.from_url(redis_url, decode_responses=True)
        self.name = name
        self._model = model
        self._default_ttl = default_ttl
        self._prefix = f"{_KEY_PREFIX}{name}:"
        self._index_key = f"{self._prefix}__index__"
        self._hits_key = f"{self._prefix}__hits__"
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> M | None:
        data = await self._client.get(self._prefix + key)
        if data is None:
            self._misses += 1
            await self._client.srem(self._index_key, key)
            return None
        try:
            value = self._model.model_validate_json(data)
        except ValidationError as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            self._misses += 1
            return None
        self._hits += 1
        await self._client.hincrby(self._hits_key, key, 1)
        return value

    async def set(self, key: str, value: M, ttl: float | None = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        await self._client.set(self._prefix + key, value.model_dump_json(), px=int(ttl * 1000))
        # Index of keys for values(); stale members are pruned lazily
        await self._client.sadd(self._index_key, key)
        await self._client.hdel(self._hits_key, key)

    async def delete(self, key: str) -> bool:
        removed = bool(await self._client.delete(self._prefix + key))
        await self._client.srem(self._index_key, key)
        await self._client.hdel(self._hits_key, key)
        return removed

    async def values(self) -> list[M]:
        out: list[M] = []
        keys = sorted(await self._client.smembers(self._index_key))
        if not keys:
            return out
        blobs = await self._client.mget([self._prefix + k for k in keys])
        for key, data in zip(keys, blobs):
            if data is None:
                await self._client.srem(self._index_key, key)
                continue
            try:
                out.append(self._model.model_validate_json(data))
            except ValidationError:
                continue
        return out

    async def stats(self) -> CacheStats:
        return CacheStats(
            name=self.name,
            size=int(await self._client.scard(self._index_key)),
            hits=self._hits,
            misses=self._misses,
        )

    async def clear(self) -> None:
        keys = list(await self._client.smembers(self._index_key))
        if keys:
            await self._client.delete(*(self._prefix + k for k in keys))
        await self._client.delete(self._index_key, self._hits_key)

    async def close(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()
