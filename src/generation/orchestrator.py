# src/generation/orchestrator.py — v2
"""Generation retry loop with near-duplicate rejection.

Each generate() call runs a small state machine:

    COMPOSING → INVOKING → FINGERPRINTING → DEDUP_CHECK → ACCEPTED
                    │                           │
                    └──────── RETRYING ◄────────┘
                                  │
                               FALLBACK

Provider failures and malformed payloads retry; so do candidates within the
similarity threshold of any artifact in the comparison window (the artifact
cache). Once the attempts are used up the run ends on a static fallback
recipe, so generate() always returns an artifact.
"""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from nutriresolve.core.errors import GenerationExhausted, ProviderError
from nutriresolve.core.models import (
    GeneratedArtifact,
    GenerationSpec,
    NutrientTotals,
    RecipeContent,
    SimilarityFingerprint,
)
from nutriresolve.generation.fallback_recipes import select_fallback
from nutriresolve.generation.prompts import RecipePrompt, compose_prompt
from nutriresolve.generation.recipe_parser import parse_recipe_payload
from nutriresolve.logging.context import set_step
from nutriresolve.providers.call_guard import guarded_call

if TYPE_CHECKING:
    from nutriresolve.cache.base_cache_store import BaseCacheStore
    from nutriresolve.cache.fingerprint import SimilarityHasher
    from nutriresolve.cache.keys import CacheKeyEngine
    from nutriresolve.providers.base_provider import BaseGenerativeProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GenerationState(str, Enum):
    COMPOSING = "composing"
    INVOKING = "invoking"
    FINGERPRINTING = "fingerprinting"
    DEDUP_CHECK = "dedup_check"
    RETRYING = "retrying"
    ACCEPTED = "accepted"
    FALLBACK = "fallback"


TERMINAL_STATES = frozenset({GenerationState.ACCEPTED, GenerationState.FALLBACK})


@dataclass
class GenerationRun:
    """Mutable record of one generate() call, kept for inspection."""

    spec: GenerationSpec
    spec_key: str
    state: GenerationState = GenerationState.COMPOSING
    attempt: int = 0
    history: list[GenerationState] = field(default_factory=list)
    seeds: list[str] = field(default_factory=list)
    failures: list[ProviderError] = field(default_factory=list)
    duplicates: list[int] = field(default_factory=list)
    artifact: GeneratedArtifact | None = None
    exhausted: GenerationExhausted | None = None
    reused: bool = False

    # Scratch for the attempt in flight
    prompt: RecipePrompt | None = None
    content: RecipeContent | None = None
    nutrition: NutrientTotals | None = None
    fingerprint: SimilarityFingerprint | None = None

    def __post_init__(self) -> None:
        self.history.append(self.state)

    def transition(self, state: GenerationState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES


class GenerationRetryOrchestrator:
    """Drive a generative provider until a non-duplicate artifact is produced.

    Args:
        provider: Generative provider (None = always serve fallbacks).
        artifact_cache: Store holding accepted artifacts; its live values are
            the comparison window.
        hasher: Fingerprint computation and threshold.
        key_engine: Spec keys for seeded, reproducible requests.
        max_attempts: Attempts before falling back.
        artifact_ttl: TTL for accepted artifacts (None = store default).
        temperature: Sampling temperature passed with each prompt.
        rng: Random source for fallback selection and unseeded nonces.
    """

    def __init__(
        self,
        provider: BaseGenerativeProvider | None,
        artifact_cache: BaseCacheStore[GeneratedArtifact],
        hasher: SimilarityHasher,
        key_engine: CacheKeyEngine,
        max_attempts: int = 3,
        artifact_ttl: float | None = None,
        temperature: float = 0.8,
        rng: random.Random | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._provider = provider
        self._cache = artifact_cache
        self._hasher = hasher
        self._keys = key_engine
        self._max_attempts = max_attempts
        self._artifact_ttl = artifact_ttl
        self._temperature = temperature
        self._rng = rng or random.Random()
        # Dedup check and window insert are one step across concurrent runs
        self._window_lock = asyncio.Lock()
        self._handlers = {
            GenerationState.COMPOSING: self._compose,
            GenerationState.INVOKING: self._invoke,
            GenerationState.FINGERPRINTING: self._fingerprint,
            GenerationState.DEDUP_CHECK: self._dedup_check,
            GenerationState.RETRYING: self._retry,
        }

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def generate(self, spec: GenerationSpec) -> GeneratedArtifact:
        """Return an accepted or fallback artifact. Never raises provider errors."""
        run = await self.run(spec)
        return _require(run.artifact, "artifact", run)

    async def run(self, spec: GenerationSpec) -> GenerationRun:
        """Execute the state machine and return the full run record."""
        run = GenerationRun(spec=spec, spec_key=self._keys.compute_spec_key(spec))

        if spec.seed:
            cached = await self._cache.get(run.spec_key)
            if cached is not None:
                logger.debug("Seeded spec %s served from artifact cache", run.spec_key)
                run.reused = True
                run.artifact = cached.model_copy(deep=True)
                run.transition(GenerationState.ACCEPTED)
                return run

        if self._provider is None:
            logger.info("No generative provider configured, serving fallback")
            run.exhausted = GenerationExhausted(0, 0, 0)
            self._enter_fallback(run)
            return run

        nonce = None if spec.seed else uuid.uuid4().hex[:8]
        while not run.done:
            set_step(run.state.value)
            await self._handlers[run.state](run, nonce)
        return run

    # === STATES ===

    async def _compose(self, run: GenerationRun, nonce: str | None) -> None:
        run.attempt += 1
        seed = f"{run.spec.seed or nonce}-{run.attempt}"
        run.seeds.append(seed)
        run.prompt = compose_prompt(run.spec, seed, self._temperature)
        run.content = run.nutrition = run.fingerprint = None
        run.transition(GenerationState.INVOKING)

    async def _invoke(self, run: GenerationRun, nonce: str | None) -> None:
        provider = _require(self._provider, "provider", run)
        prompt = _require(run.prompt, "prompt", run)
        try:
            payload = await guarded_call(
                provider.name, lambda: provider.generate_recipe(prompt), provider.timeout
            )
            run.content, run.nutrition = parse_recipe_payload(payload, run.spec, provider.name)
        except ProviderError as e:
            logger.warning(
                "Generation attempt %d/%d failed: %s", run.attempt, self._max_attempts, e
            )
            run.failures.append(e)
            run.transition(GenerationState.RETRYING)
            return
        run.transition(GenerationState.FINGERPRINTING)

    async def _fingerprint(self, run: GenerationRun, nonce: str | None) -> None:
        content = _require(run.content, "content", run)
        run.fingerprint = self._hasher.fingerprint(content.similarity_text())
        run.transition(GenerationState.DEDUP_CHECK)

    async def _dedup_check(self, run: GenerationRun, nonce: str | None) -> None:
        content = _require(run.content, "content", run)
        nutrition = _require(run.nutrition, "nutrition", run)
        fingerprint = _require(run.fingerprint, "fingerprint", run)
        async with self._window_lock:
            window = [a.fingerprint for a in await self._cache.values()]
            closest = self._hasher.closest(fingerprint, window)
            if closest is not None and closest <= self._hasher.threshold:
                logger.info(
                    "Rejected near-duplicate %r (distance %d <= %d), attempt %d/%d",
                    content.title, closest, self._hasher.threshold,
                    run.attempt, self._max_attempts,
                )
                run.duplicates.append(closest)
                run.transition(GenerationState.RETRYING)
                return

            artifact = GeneratedArtifact(
                id=str(uuid.uuid4()),
                content=content,
                nutrition_summary=nutrition,
                fingerprint=fingerprint,
                provider="generative",
                attempts=run.attempt,
                spec_key=run.spec_key,
            )
            key = run.spec_key if run.spec.seed else artifact.id
            await self._cache.set(key, artifact, self._artifact_ttl)

        logger.info(
            "Accepted %r after %d attempt(s), window size %d",
            artifact.content.title, run.attempt, len(window) + 1,
        )
        run.artifact = artifact.model_copy(deep=True)
        run.transition(GenerationState.ACCEPTED)

    async def _retry(self, run: GenerationRun, nonce: str | None) -> None:
        if run.attempt < self._max_attempts:
            run.transition(GenerationState.COMPOSING)
            return
        run.exhausted = GenerationExhausted(
            run.attempt, len(run.failures), len(run.duplicates)
        )
        logger.warning("%s, serving fallback recipe", run.exhausted)
        self._enter_fallback(run)

    def _enter_fallback(self, run: GenerationRun) -> None:
        content, nutrition = select_fallback(run.spec, self._rng)
        run.artifact = GeneratedArtifact(
            id=f"fallback-{uuid.uuid4().hex[:12]}",
            content=content,
            nutrition_summary=nutrition,
            fingerprint=self._hasher.fingerprint(content.similarity_text()),
            provider="fallback",
            attempts=run.attempt,
            spec_key=run.spec_key,
        )
        run.transition(GenerationState.FALLBACK)


def _require(value: T | None, what: str, run: GenerationRun) -> T:
    """Scratch value an earlier state should have set."""
    if value is None:
        raise RuntimeError(f"No {what} in state {run.state.value}")
    return value
