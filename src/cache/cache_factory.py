# src/cache/cache_factory.py — v3
"""Factory for the two logical caches: resolved analyses and generated artifacts."""

from __future__ import annotations

from collections.abc import Callable

from nutriresolve.cache.base_cache_store import BaseCacheStore
from nutriresolve.config.settings import Settings
from nutriresolve.core.models import GeneratedArtifact, ResolvedResult

ANALYSIS_CACHE = "analysis"
ARTIFACT_CACHE = "artifacts"

_CACHES: dict[str, tuple[type, str, str]] = {
    ANALYSIS_CACHE: (ResolvedResult, "analysis_cache_ttl_s", "analysis_cache_max_entries"),
    ARTIFACT_CACHE: (GeneratedArtifact, "artifact_cache_ttl_s", "artifact_cache_max_entries"),
}


def create_cache_store(
    name: str,
    settings: Settings | None = None,
    clock: Callable[[], float] | None = None,
) -> BaseCacheStore:
    """Instantiate the configured backend for one logical cache.

    Args:
        name: "analysis" or "artifacts".
        settings: Application settings. Defaults to the in-memory backend.
        clock: Optional clock for the in-memory backend (tests).

    Returns:
        Configured BaseCacheStore implementation.
    """
    if name not in _CACHES:
        raise ValueError(f"Unknown cache: {name!r}")
    settings = settings or Settings(_env_file=None)  # type: ignore[call-arg]
    model, ttl_attr, size_attr = _CACHES[name]
    ttl = getattr(settings, ttl_attr)

    if settings.cache_backend == "memory":
        from nutriresolve.cache.memory_store import TTLCache

        kwargs = {} if clock is None else {"clock": clock}
        return TTLCache(
            name=name,
            default_ttl=ttl,
            max_entries=getattr(settings, size_attr),
            sweep_interval=settings.cache_sweep_interval_s,
            shards=settings.cache_shards,
            **kwargs,
        )

    if settings.cache_backend == "redis":
        from nutriresolve.cache.redis_store import RedisCacheStore

        if not settings.cache_redis_url:
            raise ValueError(
                "CACHE_REDIS_URL must be set when CACHE_BACKEND=redis"
            )
        return RedisCacheStore(
            redis_url=settings.cache_redis_url,
            name=name,
            model=model,
            default_ttl=ttl,
        )

    raise ValueError(f"Unsupported cache backend: {settings.cache_backend!r}")
