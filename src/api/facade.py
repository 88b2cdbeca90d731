# src/api/facade.py — v3
"""Public API facade — single entry point for resolution and generation.

Usage:
    from nutriresolve.api.facade import NutritionEngine

    async with NutritionEngine.from_settings() as engine:
        result = await engine.resolve(ResolutionRequest(kind="text", payload="banana"))
        recipe = await engine.generate(GenerationSpec(cuisine="italian"))

The engine owns one store per logical cache (no module-level singletons)
and releases providers and background sweeps on close().
"""

from __future__ import annotations

import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

from nutriresolve.api.models import EngineStats
from nutriresolve.cache.cache_factory import ANALYSIS_CACHE, ARTIFACT_CACHE, create_cache_store
from nutriresolve.cache.fingerprint import SimilarityHasher
from nutriresolve.cache.keys import CacheKeyEngine
from nutriresolve.config.settings import Settings
from nutriresolve.core.coalescer import InflightCoalescer
from nutriresolve.core.models import (
    GeneratedArtifact,
    GenerationSpec,
    ResolutionRequest,
    ResolvedResult,
)
from nutriresolve.generation.orchestrator import GenerationRetryOrchestrator
from nutriresolve.logging.context import request_scope
from nutriresolve.resolution.chain import ConfidencePolicy, SourceResolutionChain
from nutriresolve.resolution.enricher import DietChecker, ResultEnricher, Scorer

if TYPE_CHECKING:
    from nutriresolve.cache.base_cache_store import BaseCacheStore
    from nutriresolve.providers.base_provider import (
        BaseGenerativeProvider,
        BaseStructuredProvider,
    )

logger = logging.getLogger(__name__)


class NutritionEngine:
    """Resolution chain and generation orchestrator behind one lifecycle."""

    def __init__(
        self,
        chain: SourceResolutionChain,
        orchestrator: GenerationRetryOrchestrator,
        analysis_cache: BaseCacheStore[ResolvedResult],
        artifact_cache: BaseCacheStore[GeneratedArtifact],
        structured: Sequence[BaseStructuredProvider] = (),
        generative: BaseGenerativeProvider | None = None,
        coalescer: InflightCoalescer | None = None,
    ) -> None:
        self._chain = chain
        self._orchestrator = orchestrator
        self._analysis_cache = analysis_cache
        self._artifact_cache = artifact_cache
        self._structured = list(structured)
        self._generative = generative
        self._coalescer = coalescer

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        scorer: Scorer | None = None,
        diet_checker: DietChecker | None = None,
        structured: Sequence[BaseStructuredProvider] | None = None,
        generative: BaseGenerativeProvider | None = None,
        analysis_cache: BaseCacheStore[ResolvedResult] | None = None,
        artifact_cache: BaseCacheStore[GeneratedArtifact] | None = None,
        clock: Callable[[], float] | None = None,
        rng: random.Random | None = None,
    ) -> NutritionEngine:
        """Wire an engine from settings; explicit arguments win over settings.

        Args:
            settings: Application settings. Loaded from .env if None.
            scorer: Nutrition scoring function for ResultEnricher.
            diet_checker: Diet/allergen compatibility function.
            structured: Structured providers (default: from settings).
            generative: Generative provider (default: LLM client from settings).
            analysis_cache: Store for resolved results (default: factory).
            artifact_cache: Store for generated artifacts (default: factory).
            clock: Clock for in-memory caches built here.
            rng: Random source for fallback recipe selection.
        """
        settings = settings or Settings()
        if structured is None:
            structured = build_structured_providers(settings)
        if generative is None and settings.generative_enabled:
            generative = build_generative_provider(settings)

        analysis_cache = analysis_cache or create_cache_store(ANALYSIS_CACHE, settings, clock)
        artifact_cache = artifact_cache or create_cache_store(ARTIFACT_CACHE, settings, clock)
        key_engine = CacheKeyEngine(settings.cache_key_length)
        coalescer = InflightCoalescer() if settings.coalesce_inflight else None

        chain = SourceResolutionChain(
            structured=structured,
            generative=generative,
            analysis_cache=analysis_cache,
            key_engine=key_engine,
            enricher=ResultEnricher(scorer=scorer, diet_checker=diet_checker),
            confidence=ConfidencePolicy.from_settings(settings),
            coalescer=coalescer,
        )
        orchestrator = GenerationRetryOrchestrator(
            provider=generative,
            artifact_cache=artifact_cache,
            hasher=SimilarityHasher(settings.simhash_bits, settings.simhash_threshold),
            key_engine=key_engine,
            max_attempts=settings.generation_max_attempts,
            temperature=settings.llm_generation_temperature,
            rng=rng,
        )
        logger.info(
            "Engine ready: structured=[%s], generative=%s, cache=%s",
            ", ".join(p.name for p in structured),
            generative.name if generative else "disabled",
            settings.cache_backend,
        )
        return cls(
            chain=chain,
            orchestrator=orchestrator,
            analysis_cache=analysis_cache,
            artifact_cache=artifact_cache,
            structured=structured,
            generative=generative,
            coalescer=coalescer,
        )

    async def resolve(self, request: ResolutionRequest) -> ResolvedResult:
        """Resolve a food request. Raises NotFound when nothing can answer."""
        with request_scope("resolve", requester_id=request.context.requester_id):
            return await self._chain.resolve(request)

    async def generate(self, spec: GenerationSpec) -> GeneratedArtifact:
        """Generate a recipe artifact. Never raises provider errors."""
        with request_scope("generate", requester_id=spec.requester_id):
            return await self._orchestrator.generate(spec)

    async def cache_stats(self) -> EngineStats:
        return EngineStats(
            analysis=await self._analysis_cache.stats(),
            artifacts=await self._artifact_cache.stats(),
            coalesced_requests=self._coalescer.coalesced if self._coalescer else 0,
            in_flight=self._coalescer.in_flight if self._coalescer else 0,
        )

    async def start(self) -> None:
        await self._analysis_cache.start()
        await self._artifact_cache.start()

    async def close(self) -> None:
        """Close caches and provider clients.

        Every close runs even when an earlier one fails; the first failure is
        re-raised once all of them have been attempted.
        """
        closers: list[tuple[str, Callable[[], Awaitable[None]]]] = [
            (self._analysis_cache.name, self._analysis_cache.close),
            (self._artifact_cache.name, self._artifact_cache.close),
        ]
        closers.extend((p.name, p.close) for p in self._structured)
        if self._generative is not None:
            closers.append((self._generative.name, self._generative.close))

        first_error: Exception | None = None
        for name, close in closers:
            try:
                await close()
            except Exception as e:
                logger.warning("Failed to close %s: %s", name, e)
                first_error = first_error or e
        if first_error is not None:
            raise first_error

    async def __aenter__(self) -> NutritionEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()


def build_structured_providers(settings: Settings) -> list[BaseStructuredProvider]:
    """Structured providers enabled in settings, cheapest first."""
    from nutriresolve.providers.local_table import LocalFoodTable
    from nutriresolve.providers.open_food_facts import OpenFoodFactsProvider
    from nutriresolve.providers.usda import UsdaFoodDataProvider

    providers: list[BaseStructuredProvider] = []
    if settings.local_table_enabled:
        providers.append(LocalFoodTable())
    if settings.off_enabled:
        providers.append(
            OpenFoodFactsProvider(
                base_url=settings.off_base_url,
                user_agent=settings.off_user_agent,
                timeout=settings.structured_timeout_s,
            )
        )
    if settings.usda_enabled:
        providers.append(
            UsdaFoodDataProvider(
                api_key=settings.usda_api_key,
                base_url=settings.usda_base_url,
                timeout=settings.structured_timeout_s,
            )
        )
    return providers


def build_generative_provider(settings: Settings) -> BaseGenerativeProvider:
    """LLM-backed generative provider for the configured model(s)."""
    from nutriresolve.llm.client_factory import create_from_settings
    from nutriresolve.providers.llm_generative import LLMGenerativeProvider

    client = create_from_settings(settings)
    vision = None
    if settings.llm_vision_model:
        vision = create_from_settings(settings, model=settings.llm_vision_model)
    return LLMGenerativeProvider(
        client=client,
        vision_client=vision,
        timeout=settings.generative_timeout_s,
        analysis_temperature=settings.llm_analysis_temperature,
        max_tokens=settings.llm_max_tokens,
    )
