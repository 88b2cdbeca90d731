# src/core/errors.py — v1
"""Error taxonomy for resolution and generation.

Provider-level errors (ProviderError subclasses) are always recovered inside
the resolution chain or the generation loop. NotFound is the only error a
caller of resolve() ever sees.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine errors."""


class ProviderError(EngineError):
    """A single upstream provider failed to produce a usable answer."""

    def __init__(self, provider: str, message: str = "") -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}" if message else provider)


class ProviderTimeout(ProviderError):
    """Provider did not answer within its per-attempt timeout."""


class ProviderUnavailable(ProviderError):
    """Provider rejected the call (rate limit, server error, network, unsupported)."""


class NotFoundUpstream(ProviderError):
    """Provider answered, but has no data for this query."""


class MalformedProviderResponse(ProviderError):
    """Provider answered with missing or garbage fields."""


class GenerationExhausted(EngineError):
    """Every generation attempt failed or produced a near-duplicate."""

    def __init__(self, attempts: int, failures: int, duplicates: int) -> None:
        self.attempts = attempts
        self.failures = failures
        self.duplicates = duplicates
        super().__init__(
            f"Generation exhausted after {attempts} attempts "
            f"({failures} failures, {duplicates} duplicates)"
        )


class NotFound(EngineError):
    """No provider could satisfy the request and no fallback path exists."""

    def __init__(self, kind: str, cache_key: str, tried: list[str] | None = None) -> None:
        self.kind = kind
        self.cache_key = cache_key
        self.tried = tried or []
        tried_txt = ", ".join(self.tried) or "none"
        super().__init__(f"No result for {kind} request {cache_key} (tried: {tried_txt})")
