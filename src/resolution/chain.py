# src/resolution/chain.py — v2
"""Source resolution chain: cache, then structured databases, then the
generative provider.

Per request kind:
    barcode  structured product databases only; exhaustion raises NotFound
    text     structured nutrition databases, then generative estimation
    image    generative text extraction, then the text path (discounted)
    voice    transcript (or generative speech-to-text), then the text path

Provider errors never escape: each failure is logged and the chain moves
on. Successful results are scored and cached before they are returned; a
text-like request that exhausts every source gets a degraded placeholder
(never cached) when a generative provider is configured.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from nutriresolve.core.errors import NotFound, ProviderError
from nutriresolve.core.models import (
    FoodItem,
    NutrientRecord,
    NutrientTotals,
    RequestKind,
    ResolutionRequest,
    ResolvedResult,
)
from nutriresolve.logging.context import set_step
from nutriresolve.providers.call_guard import guarded_call
from nutriresolve.resolution.enricher import ResultEnricher

if TYPE_CHECKING:
    from nutriresolve.cache.base_cache_store import BaseCacheStore
    from nutriresolve.cache.keys import CacheKeyEngine
    from nutriresolve.config.settings import Settings
    from nutriresolve.core.coalescer import InflightCoalescer
    from nutriresolve.providers.base_provider import (
        BaseGenerativeProvider,
        BaseStructuredProvider,
    )

logger = logging.getLogger(__name__)

UNKNOWN_FOOD = "Unknown food"


@dataclass(frozen=True)
class ConfidencePolicy:
    """Confidence assigned per source, and discounts for lossy input steps."""

    barcode: float = 0.95
    structured: float = 0.9
    generative: float = 0.7
    image_factor: float = 0.8
    voice_factor: float = 0.9
    degraded: float = 0.3

    @classmethod
    def from_settings(cls, settings: Settings) -> ConfidencePolicy:
        return cls(
            barcode=settings.confidence_barcode,
            structured=settings.confidence_structured,
            generative=settings.confidence_generative,
            image_factor=settings.image_confidence_factor,
            voice_factor=settings.voice_confidence_factor,
            degraded=settings.degraded_confidence,
        )


class SourceResolutionChain:
    """Resolve requests into scored results through an ordered source chain.

    Args:
        structured: Structured providers in priority order.
        generative: Generative provider, or None to disable inference paths.
        analysis_cache: Store for resolved results.
        key_engine: Cache key derivation.
        enricher: Scoring and diet annotation (no-op when omitted).
        confidence: Confidence policy.
        coalescer: Shares one resolution among concurrent identical misses.
        result_ttl: TTL for cached results (None = store default).
    """

    def __init__(
        self,
        structured: Sequence[BaseStructuredProvider],
        generative: BaseGenerativeProvider | None,
        analysis_cache: BaseCacheStore[ResolvedResult],
        key_engine: CacheKeyEngine,
        enricher: ResultEnricher | None = None,
        confidence: ConfidencePolicy | None = None,
        coalescer: InflightCoalescer | None = None,
        result_ttl: float | None = None,
    ) -> None:
        self._structured = list(structured)
        self._generative = generative
        self._cache = analysis_cache
        self._keys = key_engine
        self._enricher = enricher or ResultEnricher()
        self._confidence = confidence or ConfidencePolicy()
        self._coalescer = coalescer
        self._result_ttl = result_ttl

    async def resolve(self, request: ResolutionRequest) -> ResolvedResult:
        """Resolve request, returning a caller-owned copy.

        Raises:
            NotFound: No source could answer and no fallback applies.
        """
        start = time.perf_counter()
        key = self._keys.compute_key(request)

        cached = await self._cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s request %s", request.kind.value, key)
            result = cached.model_copy(deep=True, update={"provenance": "cache"})
        else:
            if self._coalescer is not None:
                shared = await self._coalescer.run(key, lambda: self._resolve_miss(request, key))
            else:
                shared = await self._resolve_miss(request, key)
            result = shared.model_copy(deep=True)

        self._enricher.annotate_diet(result, request.context.dietary)
        result.processing_time_ms = int((time.perf_counter() - start) * 1000)
        return result

    async def _resolve_miss(self, request: ResolutionRequest, key: str) -> ResolvedResult:
        tried: list[str] = []
        kind = request.kind

        if kind == RequestKind.BARCODE:
            result = await self._lookup_structured(
                str(request.payload), RequestKind.BARCODE, self._confidence.barcode, key, kind, tried
            )
            if result is None:
                raise NotFound(kind.value, key, tried)
        else:
            text, factor = await self._to_text(request, tried)
            result = None
            if text:
                result = await self._resolve_text(text, factor, key, kind, tried)
            if result is None:
                if self._generative is None:
                    raise NotFound(kind.value, key, tried)
                logger.warning(
                    "All sources exhausted for %s request %s, returning degraded result",
                    kind.value, key,
                )
                return self._degraded(key, kind)

        self._enricher.enrich_scores(result)
        await self._cache.set(key, result, self._result_ttl)
        logger.info(
            "Resolved %s request %s via %s (confidence %.2f)",
            kind.value, key, result.resolved_by, result.confidence,
        )
        return result

    async def _to_text(
        self, request: ResolutionRequest, tried: list[str]
    ) -> tuple[str | None, float]:
        """Reduce a text-like request to text plus its confidence factor."""
        if request.kind == RequestKind.TEXT:
            return str(request.payload), 1.0

        if request.kind == RequestKind.VOICE:
            factor = self._confidence.voice_factor
            if isinstance(request.payload, str):
                return request.payload, factor
            generative = self._generative
            if generative is None:
                return None, factor
            set_step("transcribe")
            audio = request.payload
            try:
                text = await guarded_call(
                    generative.name, lambda: generative.transcribe(audio), generative.timeout
                )
            except ProviderError as e:
                logger.warning("Transcription failed: %s", e)
                tried.append(generative.name)
                return None, factor
            return text, factor

        # image
        factor = self._confidence.image_factor
        generative = self._generative
        if generative is None:
            return None, factor
        set_step("extract_text")
        image = request.payload
        if not isinstance(image, bytes):
            raise TypeError("image requests carry raw image bytes")
        try:
            text = await guarded_call(
                generative.name,
                lambda: generative.extract_text(image, request.media_type),
                generative.timeout,
            )
        except ProviderError as e:
            logger.warning("Image text extraction failed: %s", e)
            tried.append(generative.name)
            return None, factor
        return ", ".join(ln.strip() for ln in text.splitlines() if ln.strip()), factor

    async def _resolve_text(
        self,
        text: str,
        factor: float,
        key: str,
        kind: RequestKind,
        tried: list[str],
    ) -> ResolvedResult | None:
        result = await self._lookup_structured(
            text, RequestKind.TEXT, self._confidence.structured * factor, key, kind, tried
        )
        if result is not None or self._generative is None:
            return result

        generative = self._generative
        set_step(generative.name)
        try:
            estimate = await guarded_call(
                generative.name,
                lambda: generative.estimate_nutrition(text),
                generative.timeout,
            )
        except ProviderError as e:
            logger.warning("Generative estimation failed: %s", e)
            tried.append(generative.name)
            return None

        confidence = round(self._confidence.generative * factor, 4)
        return ResolvedResult(
            foods=[f.model_copy(update={"confidence": confidence}) for f in estimate.foods],
            totals=estimate.totals,
            provenance="generative",
            origin="generative",
            confidence=confidence,
            resolved_by=generative.name,
            cache_key=key,
            kind=kind,
        )

    async def _lookup_structured(
        self,
        query: str,
        source_kind: RequestKind,
        confidence: float,
        key: str,
        kind: RequestKind,
        tried: list[str],
    ) -> ResolvedResult | None:
        for provider in self._structured:
            if not provider.handles(source_kind):
                continue
            set_step(provider.name)
            tried.append(provider.name)
            try:
                record = await guarded_call(
                    provider.name, lambda p=provider: p.lookup(query), provider.timeout
                )
            except ProviderError as e:
                logger.warning("Provider %s failed, advancing: %s", provider.name, e)
                continue
            if record is None:
                logger.debug("Provider %s has no match for %r", provider.name, query)
                continue
            return self._from_record(record, provider.name, round(confidence, 4), key, kind)
        return None

    @staticmethod
    def _from_record(
        record: NutrientRecord,
        provider: str,
        confidence: float,
        key: str,
        kind: RequestKind,
    ) -> ResolvedResult:
        food = FoodItem(
            name=record.name,
            quantity=record.basis_quantity,
            unit=record.basis_unit,
            confidence=confidence,
        )
        return ResolvedResult(
            foods=[food],
            totals=NutrientTotals.from_record(record),
            provenance="structured-db",
            origin="structured-db",
            confidence=confidence,
            resolved_by=provider,
            cache_key=key,
            kind=kind,
        )

    def _degraded(self, key: str, kind: RequestKind) -> ResolvedResult:
        confidence = self._confidence.degraded
        return ResolvedResult(
            foods=[FoodItem(name=UNKNOWN_FOOD, confidence=confidence)],
            totals=NutrientTotals(),
            provenance="generative",
            origin="generative",
            confidence=confidence,
            resolved_by="fallback",
            cache_key=key,
            kind=kind,
            degraded=True,
        )
