# src/cache/models.py — v2
"""Cache domain models: CacheEntry, CacheStats."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """Single cache entry. Owned by the store that created it.

    `seq` is the global insertion order used for oldest-first eviction.
    """

    key: str
    value: T
    created_at: float
    ttl: float
    seq: int
    hit_count: int = 0

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


class CacheStats(BaseModel):
    """Counters reported by a cache store."""

    name: str
    size: int
    max_entries: int | None = None
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
