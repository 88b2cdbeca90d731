# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# === REQUESTS ===


class RequestKind(str, Enum):
    """Kind of unstructured input submitted for resolution."""

    IMAGE = "image"
    BARCODE = "barcode"
    TEXT = "text"
    VOICE = "voice"


class DietaryPreferences(BaseModel):
    """Diets and allergen restrictions declared by the requester."""

    model_config = ConfigDict(frozen=True)

    diets: tuple[str, ...] = ()
    allergens: tuple[str, ...] = ()


class RequesterContext(BaseModel):
    """Who is asking. Never part of the cache key."""

    model_config = ConfigDict(frozen=True)

    requester_id: str | None = None
    dietary: DietaryPreferences = Field(default_factory=DietaryPreferences)
    locale: str = "en"


class ResolutionRequest(BaseModel):
    """Immutable unstructured request: photo, barcode, text or voice."""

    model_config = ConfigDict(frozen=True)

    kind: RequestKind
    payload: bytes | str
    context: RequesterContext = Field(default_factory=RequesterContext)
    media_type: str | None = None

    @model_validator(mode="after")
    def _check_payload_type(self) -> ResolutionRequest:
        if self.kind == RequestKind.IMAGE and not isinstance(self.payload, bytes):
            raise ValueError("image requests carry raw image bytes")
        if self.kind in (RequestKind.TEXT, RequestKind.BARCODE) and isinstance(self.payload, bytes):
            raise ValueError(f"{self.kind.value} requests carry a string payload")
        return self

    @property
    def is_binary(self) -> bool:
        return isinstance(self.payload, bytes)


# === NUTRIENTS ===


class NutrientRecord(BaseModel):
    """Raw nutrient fields returned by a structured or generative provider.

    Values are per `basis_quantity` `basis_unit` (100 g for database rows).
    """

    name: str
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0
    sugar: float = 0.0
    sodium: float = 0.0  # mg
    saturated_fat: float = 0.0
    basis_quantity: float = 100.0
    basis_unit: str = "g"
    brand: str | None = None
    source_id: str | None = None


class NutrientTotals(BaseModel):
    """Aggregate macro/micronutrient totals of a resolved result or recipe."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0
    sugar: float = 0.0
    sodium: float = 0.0
    saturated_fat: float = 0.0

    @classmethod
    def from_record(cls, record: NutrientRecord) -> NutrientTotals:
        return cls(
            calories=record.calories,
            protein=record.protein,
            carbs=record.carbs,
            fat=record.fat,
            fiber=record.fiber,
            sugar=record.sugar,
            sodium=record.sodium,
            saturated_fat=record.saturated_fat,
        )


class FoodItem(BaseModel):
    """Single food identified in a request."""

    name: str
    quantity: float = 100.0
    unit: str = "g"
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class GenerativeEstimate(BaseModel):
    """Validated nutrition estimate produced by the generative provider."""

    foods: list[FoodItem]
    totals: NutrientTotals


# === ENRICHMENT ===


class NutritionScore(BaseModel):
    """Output of the injected nutrition scorer."""

    score: float
    grade: str
    explanation: str = ""
    breakdown: dict[str, float] = Field(default_factory=dict)


class DietVerdict(BaseModel):
    """Compatibility verdict for one diet or allergen restriction."""

    compatible: bool
    reason: str = ""


# === RESOLVED RESULT ===


Provenance = Literal["cache", "structured-db", "generative"]


class ResolvedResult(BaseModel):
    """Structured, nutrition-scored output of the resolution chain.

    Handed to callers as a deep copy; the cached instance is never exposed.
    """

    foods: list[FoodItem]
    totals: NutrientTotals
    provenance: Provenance
    origin: Literal["structured-db", "generative"]
    confidence: float = Field(ge=0.0, le=1.0)
    resolved_by: str
    cache_key: str
    kind: RequestKind
    degraded: bool = False
    nutrition_score: NutritionScore | None = None
    diet_compatibility: dict[str, DietVerdict] = Field(default_factory=dict)
    health_suggestions: list[str] = Field(default_factory=list)
    processing_time_ms: int = 0
    resolved_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_verified(self) -> bool:
        """True when the data came from a structured database, directly or via cache."""
        return self.origin == "structured-db" and not self.degraded


# === GENERATION ===


class GenerationSpec(BaseModel):
    """Constraints for a recipe-generation request."""

    model_config = ConfigDict(frozen=True)

    cuisine: str | None = None
    diet: str | None = None
    calorie_target: int = 500
    protein_target: int = 20
    servings: int = 2
    difficulty: Literal["easy", "medium", "hard"] | None = None
    max_cook_time_min: int | None = None
    ingredients: tuple[str, ...] = ()
    pantry_items: tuple[str, ...] = ()
    exclusions: tuple[str, ...] = ()
    seed: str | None = None
    requester_id: str | None = None


class RecipeIngredient(BaseModel):
    """Ingredient line of a generated recipe."""

    item: str
    quantity: str = ""
    grams: float = 0.0


class RecipeContent(BaseModel):
    """Validated recipe body."""

    title: str
    description: str = ""
    cuisine: str = "international"
    diet: str = "balanced"
    servings: int = 2
    difficulty: Literal["easy", "medium", "hard"] = "medium"
    ingredients: list[RecipeIngredient]
    steps: list[str]
    prep_time_min: int = 15
    cook_time_min: int = 20
    allergen_flags: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    def similarity_text(self) -> str:
        """Text the similarity fingerprint is computed over."""
        names = " ".join(i.item for i in self.ingredients)
        return f"{self.title} {names} {' '.join(self.steps)}"


class SimilarityFingerprint(BaseModel):
    """Fixed-width locality-sensitive bit string."""

    model_config = ConfigDict(frozen=True)

    value: int = Field(ge=0)
    width: int = 256

    def hex(self) -> str:
        return f"{self.value:0{self.width // 4}x}"


class GeneratedArtifact(BaseModel):
    """Accepted generation output (or static fallback)."""

    id: str
    content: RecipeContent
    nutrition_summary: NutrientTotals
    fingerprint: SimilarityFingerprint
    provider: Literal["generative", "fallback"]
    attempts: int = 0
    spec_key: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
