# src/cache/memory_store.py — v1
"""In-process TTL cache (CACHE_BACKEND=memory).

Bounded, time-expiring key/value store:
  - capacity-bounded, evicting the single oldest-inserted entry
  - expired entries purged lazily on get() and by a periodic sweep task
  - get() bumps the entry hit counter without touching value or TTL
  - keys are sharded across locks so readers and writers of one key never
    observe a torn entry; locks are never held across an await

The cache is advisory: a restart may legitimately lose every entry.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
import zlib
from collections import OrderedDict
from collections.abc import Callable
from itertools import count
from typing import Generic, TypeVar

from nutriresolve.cache.base_cache_store import BaseCacheStore
from nutriresolve.cache.models import CacheEntry, CacheStats

logger = logging.getLogger(__name__)

V = TypeVar("V")


class _Shard(Generic[V]):
    __slots__ = ("lock", "entries")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()


class TTLCache(BaseCacheStore[V]):
    """Bounded in-memory cache with per-entry TTL.

    Args:
        name: Logical cache name (used in logs and stats).
        default_ttl: TTL in seconds applied when set() gets no ttl.
        max_entries: Capacity; inserting beyond it evicts the oldest entry.
        sweep_interval: Seconds between background sweeps once started.
        shards: Number of key-sharded locks.
        clock: Monotonic clock returning seconds (injectable for tests).
    """

    def __init__(
        self,
        name: str,
        default_ttl: float,
        max_entries: int = 1000,
        sweep_interval: float = 300.0,
        shards: int = 16,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if default_ttl <= 0:
            raise ValueError("default_ttl must be > 0")
        self.name = name
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._shards: list[_Shard[V]] = [_Shard() for _ in range(max(1, shards))]
        self._seq = count()
        self._meta_lock = threading.Lock()
        self._size = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        self._sweeper: asyncio.Task[None] | None = None

    # --- KeyValueStore API ---

    async def get(self, key: str) -> V | None:
        """Return the live value for key, purging it if expired."""
        shard = self._shard_for(key)
        now = self._clock()
        with shard.lock:
            entry = shard.entries.get(key)
            if entry is None:
                expired = False
            elif entry.is_expired(now):
                del shard.entries[key]
                expired = True
                entry = None
            else:
                entry.hit_count += 1
                hits = entry.hit_count
                value = entry.value

        if entry is None:
            self._count(misses=1, size=-1 if expired else 0, expirations=1 if expired else 0)
            logger.debug("Cache %s %s: %s", self.name, "EXPIRED" if expired else "MISS", key)
            return None

        self._count(hits=1)
        logger.debug("Cache %s HIT: %s (hits=%d)", self.name, key, hits)
        return value

    async def set(self, key: str, value: V, ttl: float | None = None) -> None:
        """Insert or replace key. Replacing resets created_at and insertion order."""
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        shard = self._shard_for(key)
        entry = CacheEntry(
            key=key, value=value, created_at=self._clock(), ttl=ttl, seq=next(self._seq)
        )
        with shard.lock:
            replaced = shard.entries.pop(key, None) is not None
            shard.entries[key] = entry

        if not replaced:
            self._count(size=1)
        logger.debug("Cache %s SET: %s (ttl=%.0fs)", self.name, key, ttl)

        while self._size > self._max_entries:
            if not self._evict_oldest():
                break

    async def delete(self, key: str) -> bool:
        shard = self._shard_for(key)
        with shard.lock:
            removed = shard.entries.pop(key, None) is not None
        if removed:
            self._count(size=-1)
            logger.debug("Cache %s DELETE: %s", self.name, key)
        return removed

    async def values(self) -> list[V]:
        """Snapshot of live values, oldest first."""
        now = self._clock()
        live: list[CacheEntry[V]] = []
        for shard in self._shards:
            with shard.lock:
                live.extend(e for e in shard.entries.values() if not e.is_expired(now))
        live.sort(key=lambda e: e.seq)
        return [e.value for e in live]

    async def stats(self) -> CacheStats:
        with self._meta_lock:
            return CacheStats(
                name=self.name,
                size=self._size,
                max_entries=self._max_entries,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
            )

    async def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        removed = 0
        for shard in self._shards:
            with shard.lock:
                stale = [k for k, e in shard.entries.items() if e.is_expired(now)]
                for k in stale:
                    del shard.entries[k]
            removed += len(stale)
        if removed:
            self._count(size=-removed, expirations=removed)
            logger.debug("Cache %s sweep removed %d entries", self.name, removed)
        return removed

    async def clear(self) -> None:
        removed = 0
        for shard in self._shards:
            with shard.lock:
                removed += len(shard.entries)
                shard.entries.clear()
        self._count(size=-removed)
        logger.info("Cache %s cleared (%d entries removed)", self.name, removed)

    async def hit_count(self, key: str) -> int:
        """Hit counter of a live entry (0 when absent)."""
        shard = self._shard_for(key)
        with shard.lock:
            entry = shard.entries.get(key)
            return entry.hit_count if entry is not None else 0

    # --- Background sweep ---

    async def start(self) -> None:
        """Start the periodic sweep task on the running loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(
                self._sweep_forever(), name=f"ttlcache-sweep-{self.name}"
            )

    async def close(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Cache %s sweep failed", self.name)

    # --- Internal helpers ---

    def _shard_for(self, key: str) -> _Shard[V]:
        return self._shards[zlib.crc32(key.encode("utf-8")) % len(self._shards)]

    def _evict_oldest(self) -> bool:
        """Evict the globally oldest-inserted entry. False if the cache is empty."""
        while True:
            victim: tuple[_Shard[V], CacheEntry[V]] | None = None
            for shard in self._shards:
                with shard.lock:
                    if not shard.entries:
                        continue
                    head = next(iter(shard.entries.values()))
                if victim is None or head.seq < victim[1].seq:
                    victim = (shard, head)
            if victim is None:
                return False

            shard, head = victim
            with shard.lock:
                if shard.entries.get(head.key) is not head:
                    continue  # raced with a writer; rescan
                del shard.entries[head.key]
            self._count(size=-1, evictions=1)
            logger.debug("Cache %s EVICT: %s", self.name, head.key)
            return True

    def _count(
        self,
        hits: int = 0,
        misses: int = 0,
        size: int = 0,
        evictions: int = 0,
        expirations: int = 0,
    ) -> None:
        with self._meta_lock:
            self._hits += hits
            self._misses += misses
            self._size += size
            self._evictions += evictions
            self._expirations += expirations
