# src/cache/keys.py — v1
"""Content-addressed cache keys.

Text-like payloads are canonicalised before hashing so that trivially
different inputs ("Banana!" vs " banana") share a key. Binary payloads are
hashed raw. Keys are SHA-256 hex digests truncated to a fixed length.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any

from nutriresolve.core.models import GenerationSpec, ResolutionRequest

DEFAULT_KEY_LENGTH = 32

_DISALLOWED = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def canonicalize_text(text: str) -> str:
    """Lowercase, keep [a-z0-9 ] only, collapse and trim whitespace."""
    text = _DISALLOWED.sub("", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


class CacheKeyEngine:
    """Derive stable cache keys from requests and resolution parameters."""

    def __init__(self, key_length: int = DEFAULT_KEY_LENGTH) -> None:
        if not 1 <= key_length <= 64:
            raise ValueError("key_length must be within [1, 64]")
        self._key_length = key_length

    @property
    def key_length(self) -> int:
        return self._key_length

    def compute_key(
        self,
        request: ResolutionRequest,
        parameters: dict[str, Any] | None = None,
    ) -> str:
        """Return the cache key for a resolution request.

        Args:
            request: The request; only kind and payload participate.
            parameters: Resolution parameters that change the answer
                (chain version, locale, ...). Serialised with sorted keys.
        """
        digest = hashlib.sha256()
        digest.update(request.kind.value.encode("ascii"))
        digest.update(b"\x00")
        digest.update(_canonical_params(parameters))
        digest.update(b"\x00")
        if isinstance(request.payload, bytes):
            digest.update(b"b:")
            digest.update(request.payload)
        else:
            digest.update(b"t:")
            digest.update(canonicalize_text(request.payload).encode("utf-8"))
        return digest.hexdigest()[: self._key_length]

    def compute_spec_key(self, spec: GenerationSpec) -> str:
        """Return the cache key for a generation spec (requester excluded)."""
        data = spec.model_dump(mode="json", exclude={"requester_id"})
        for field in ("cuisine", "diet"):
            if data.get(field):
                data[field] = canonicalize_text(data[field])
        for field in ("ingredients", "pantry_items", "exclusions"):
            data[field] = sorted(canonicalize_text(v) for v in data[field])
        digest = hashlib.sha256(b"spec\x00" + _canonical_params(data))
        return digest.hexdigest()[: self._key_length]


def _canonical_params(parameters: dict[str, Any] | None) -> bytes:
    if not parameters:
        return b"{}"
    return json.dumps(
        parameters, sort_keys=True, separators=(",", ":"), default=str
    ).encode("utf-8")
