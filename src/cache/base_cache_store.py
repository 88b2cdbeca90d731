# src/cache/base_cache_store.py — v2
"""Abstract key/value store capability used by every logical cache.

Orchestrators depend on this interface only, so the in-process TTLCache can
be swapped for a distributed backend without touching orchestration logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from nutriresolve.cache.models import CacheStats

V = TypeVar("V")


class BaseCacheStore(ABC, Generic[V]):
    """Unified interface for cache storage backends."""

    name: str = "cache"

    @abstractmethod
    async def get(self, key: str) -> V | None:
        """Return the live value for key, or None on miss/expiry."""

    @abstractmethod
    async def set(self, key: str, value: V, ttl: float | None = None) -> None:
        """Store value under key; ttl in seconds (None = store default)."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove key. Returns True if an entry was removed."""

    @abstractmethod
    async def values(self) -> list[V]:
        """Snapshot of every live (unexpired) value."""

    @abstractmethod
    async def stats(self) -> CacheStats:
        """Size and counters for observability."""

    async def sweep(self) -> int:
        """Purge expired entries. Backends with native expiry return 0."""
        return 0

    async def clear(self) -> None:
        """Remove every entry."""
        raise NotImplementedError

    async def start(self) -> None:
        """Start background maintenance, if any."""

    async def close(self) -> None:
        """Stop background maintenance and release resources."""

    async def __aenter__(self) -> BaseCacheStore[V]:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
