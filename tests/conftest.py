# tests/conftest.py — v3
"""Shared test fixtures for all unit and integration tests.

Provides a fake clock, stub structured/generative providers, a mock LLM
client, in-memory caches bound to the fake clock, and recipe payloads.
No external dependencies: all I/O is mocked.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest

from nutriresolve.cache.fingerprint import SimilarityHasher
from nutriresolve.cache.keys import CacheKeyEngine
from nutriresolve.cache.memory_store import TTLCache
from nutriresolve.core.errors import ProviderUnavailable
from nutriresolve.core.models import (
    FoodItem,
    GenerativeEstimate,
    NutrientRecord,
    NutrientTotals,
    RequestKind,
)
from nutriresolve.llm.base_client import BaseLLMClient
from nutriresolve.llm.models import AudioInput, CompletionRequest, LLMResponse
from nutriresolve.providers.base_provider import (
    BaseGenerativeProvider,
    BaseStructuredProvider,
)


# === TEST DOUBLES ===


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubStructuredProvider(BaseStructuredProvider):
    """Structured provider answering from a dict, or raising a set error.

    `delay` makes lookups slow (for timeout and coalescing tests).
    """

    def __init__(
        self,
        name: str = "stub_db",
        kinds: frozenset[RequestKind] = frozenset({RequestKind.TEXT}),
        records: dict[str, NutrientRecord] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        timeout: float = 5.0,
    ) -> None:
        super().__init__(timeout=timeout)
        self._name = name
        self.kinds = kinds
        self.records = records or {}
        self.error = error
        self.delay = delay
        self.calls: list[str] = []
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    async def lookup(self, query: str) -> NutrientRecord | None:
        self.calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.records.get(query.strip().lower())

    async def close(self) -> None:
        self.closed = True


class StubGenerativeProvider(BaseGenerativeProvider):
    """Generative provider returning queued recipe payloads and fixed estimates.

    Queue items that are exceptions are raised instead of returned. Once the
    queue is empty, `default_recipe` is returned.
    """

    name = "stub_generative"

    def __init__(
        self,
        estimate: GenerativeEstimate | None = None,
        extracted_text: str = "banana",
        transcript: str = "banana",
        default_recipe: str | None = None,
        timeout: float = 5.0,
    ) -> None:
        super().__init__(timeout=timeout)
        self.estimate = estimate or GenerativeEstimate(
            foods=[FoodItem(name="guessed food", quantity=150, confidence=0.7)],
            totals=NutrientTotals(calories=210, protein=5, carbs=30, fat=7),
        )
        self.extracted_text = extracted_text
        self.transcript = transcript
        self.default_recipe = default_recipe
        self.recipes: list[str | Exception] = []
        self.estimate_error: Exception | None = None
        self.extract_error: Exception | None = None
        self.calls: dict[str, int] = {
            "extract_text": 0, "transcribe": 0, "estimate_nutrition": 0, "generate_recipe": 0,
        }
        self.prompts: list[Any] = []
        self.descriptions: list[str] = []

    async def extract_text(self, image: bytes, media_type: str | None = None) -> str:
        self.calls["extract_text"] += 1
        if self.extract_error is not None:
            raise self.extract_error
        return self.extracted_text

    async def transcribe(self, audio: bytes) -> str:
        self.calls["transcribe"] += 1
        return self.transcript

    async def estimate_nutrition(self, description: str) -> GenerativeEstimate:
        self.calls["estimate_nutrition"] += 1
        self.descriptions.append(description)
        if self.estimate_error is not None:
            raise self.estimate_error
        return self.estimate

    async def generate_recipe(self, prompt: Any) -> str:
        self.calls["generate_recipe"] += 1
        self.prompts.append(prompt)
        item: str | Exception | None = self.recipes.pop(0) if self.recipes else self.default_recipe
        if item is None:
            raise ProviderUnavailable(self.name, "no recipe queued")
        if isinstance(item, Exception):
            raise item
        return item


class MockLLMClient(BaseLLMClient):
    """Mock LLM client recording calls and replaying queued responses."""

    provider_name = "mock"

    def __init__(
        self,
        default_response: str = '{"result": "mock"}',
        vision: bool = True,
        transcript: str | None = None,
    ) -> None:
        super().__init__(model="mock-model")
        self._default_response = default_response
        self._response_queue: list[str] = []
        self.supports_vision = vision
        self._transcript = transcript
        self.calls: list[dict[str, Any]] = []

    def set_responses(self, *responses: str) -> None:
        self._response_queue = list(responses)

    def _connect(self) -> None:
        raise AssertionError("mock client never builds an SDK")

    async def _send(self, request: CompletionRequest) -> LLMResponse:
        self.calls.append(dict(request))
        content = self._response_queue.pop(0) if self._response_queue else self._default_response
        return LLMResponse(content=content, model="mock-model", provider="mock")

    async def transcribe(self, audio: AudioInput) -> str:
        if self._transcript is None:
            return await super().transcribe(audio)
        self.calls.append({"audio": audio})
        return self._transcript


def make_recipe_payload(
    title: str,
    ingredients: list[str],
    steps: list[str],
    **extra: Any,
) -> str:
    data: dict[str, Any] = {
        "recipe_id": "ignored",
        "title": title,
        "ingredients": [{"item": i, "qty": "1 cup", "grams": 100} for i in ingredients],
        "steps": steps,
        "macros": {"cal": 520, "protein_g": 32, "carbs_g": 40, "fat_g": 18, "fiber_g": 7},
        "prep_time_min": 10,
        "cook_time_min": 25,
    }
    data.update(extra)
    return json.dumps(data)


DISTINCT_RECIPES: list[tuple[str, list[str], list[str]]] = [
    (
        "Lemon Herb Grilled Salmon",
        ["salmon fillet", "lemon", "dill", "olive oil"],
        ["Marinate salmon with lemon and dill", "Grill skin side down for six minutes",
         "Flip and finish for three minutes"],
    ),
    (
        "Smoky Black Bean Tacos",
        ["black beans", "corn tortillas", "chipotle", "red cabbage", "lime"],
        ["Simmer beans with chipotle", "Warm tortillas in a dry skillet",
         "Top with shredded cabbage and lime juice"],
    ),
    (
        "Coconut Chickpea Curry",
        ["chickpeas", "coconut milk", "curry paste", "spinach", "basmati rice"],
        ["Fry curry paste until fragrant", "Add chickpeas and coconut milk",
         "Stir spinach through and serve over rice"],
    ),
    (
        "Mushroom Barley Risotto",
        ["pearl barley", "cremini mushrooms", "shallot", "parmesan", "thyme"],
        ["Brown mushrooms with shallot", "Toast barley then add stock gradually",
         "Finish with parmesan and thyme"],
    ),
]


# === FIXTURES ===


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def key_engine() -> CacheKeyEngine:
    return CacheKeyEngine()


@pytest.fixture
def hasher() -> SimilarityHasher:
    return SimilarityHasher()


@pytest.fixture
def analysis_cache(clock: FakeClock) -> TTLCache:
    return TTLCache(name="analysis", default_ttl=7 * 24 * 3600, max_entries=500, clock=clock)


@pytest.fixture
def artifact_cache(clock: FakeClock) -> TTLCache:
    return TTLCache(name="artifacts", default_ttl=24 * 3600, max_entries=200, clock=clock)


@pytest.fixture
def banana_record() -> NutrientRecord:
    return NutrientRecord(
        name="Bananas, raw", calories=89, protein=1.09, carbs=22.84, fat=0.33,
        fiber=2.6, sugar=12.23, sodium=1, source_id="173944",
    )


@pytest.fixture
def text_db(banana_record: NutrientRecord) -> StubStructuredProvider:
    return StubStructuredProvider(name="text_db", records={"banana": banana_record})


@pytest.fixture
def barcode_db() -> StubStructuredProvider:
    return StubStructuredProvider(name="barcode_db", kinds=frozenset({RequestKind.BARCODE}))


@pytest.fixture
def generative() -> StubGenerativeProvider:
    return StubGenerativeProvider()


@pytest.fixture
def stub_structured() -> type[StubStructuredProvider]:
    return StubStructuredProvider


@pytest.fixture
def stub_generative() -> type[StubGenerativeProvider]:
    return StubGenerativeProvider


@pytest.fixture
def mock_llm() -> MockLLMClient:
    return MockLLMClient()


@pytest.fixture
def mock_llm_cls() -> type[MockLLMClient]:
    return MockLLMClient


@pytest.fixture
def recipe_payload() -> Callable[..., str]:
    return make_recipe_payload


@pytest.fixture
def distinct_recipes() -> list[str]:
    return [make_recipe_payload(t, i, s) for t, i, s in DISTINCT_RECIPES]
