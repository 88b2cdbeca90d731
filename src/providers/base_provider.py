# src/providers/base_provider.py — v1
"""Abstract provider interfaces consumed by the resolution chain and the
generation orchestrator.

Structured providers signal "not found" by returning None and raise
ProviderError subclasses for everything else. Generative providers always
either return a validated value or raise.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from nutriresolve.core.models import GenerativeEstimate, NutrientRecord, RequestKind

if TYPE_CHECKING:
    from nutriresolve.generation.prompts import RecipePrompt


class BaseStructuredProvider(ABC):
    """Product or nutrition database lookup."""

    #: Request kinds this provider can answer (barcode and/or text).
    kinds: frozenset[RequestKind] = frozenset()

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier used in provenance and logs."""

    @abstractmethod
    async def lookup(self, query: str) -> NutrientRecord | None:
        """Return nutrients per 100 units for query, or None if not found."""

    def handles(self, kind: RequestKind) -> bool:
        return kind in self.kinds

    async def close(self) -> None:
        """Release connections."""


class BaseGenerativeProvider(ABC):
    """Generative AI service: vision extraction, estimation, recipe generation."""

    name: str = "generative"

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout = timeout

    @abstractmethod
    async def extract_text(self, image: bytes, media_type: str | None = None) -> str:
        """Food names / label text read from an image (one item per line)."""

    @abstractmethod
    async def transcribe(self, audio: bytes) -> str:
        """Speech-to-text for voice logging."""

    @abstractmethod
    async def estimate_nutrition(self, description: str) -> GenerativeEstimate:
        """Infer foods and totals from a free-text description."""

    @abstractmethod
    async def generate_recipe(self, prompt: RecipePrompt) -> str:
        """Raw generated recipe payload (JSON text, validated by the caller)."""

    async def close(self) -> None:
        """Release connections."""
