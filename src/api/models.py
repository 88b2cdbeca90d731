# src/api/models.py — v2
"""API-level models returned by the engine facade."""

from __future__ import annotations

from pydantic import BaseModel

from nutriresolve.cache.models import CacheStats


class EngineStats(BaseModel):
    """Cache and coalescing counters for both logical caches."""

    analysis: CacheStats
    artifacts: CacheStats
    coalesced_requests: int = 0
    in_flight: int = 0
