# src/generation/recipe_parser.py — v1
"""Validate raw generated recipe payloads.

Two payload shapes are accepted: the prompt contract (title / steps /
macros{cal, protein_g, ...}) and the older shape (name / instructions /
nutrition{calories, protein, ...}). Missing optional fields are defaulted;
a payload without ingredients or steps is rejected.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from nutriresolve.core.errors import MalformedProviderResponse
from nutriresolve.core.models import (
    GenerationSpec,
    NutrientTotals,
    RecipeContent,
    RecipeIngredient,
)

logger = logging.getLogger(__name__)

_DIFFICULTIES = {"easy", "medium", "hard"}

# (contract key, legacy key, default)
_MACROS: dict[str, tuple[str, str, float | None]] = {
    "calories": ("cal", "calories", None),
    "protein": ("protein_g", "protein", None),
    "carbs": ("carbs_g", "carbs", 45.0),
    "fat": ("fat_g", "fat", 18.0),
    "fiber": ("fiber_g", "fiber", 8.0),
}


def parse_recipe_payload(
    payload: str,
    spec: GenerationSpec,
    provider: str = "generative",
) -> tuple[RecipeContent, NutrientTotals]:
    """Parse and validate a generated recipe.

    Args:
        payload: Raw text returned by the generative provider.
        spec: Spec the recipe was generated for (macro and label defaults).
        provider: Provider name used in error messages.

    Returns:
        (content, per-serving nutrition summary).

    Raises:
        MalformedProviderResponse: Invalid JSON, or no ingredients / steps.
    """
    data = _load_object(payload, provider)

    ingredients = [i for i in (_ingredient(raw) for raw in data.get("ingredients") or []) if i]
    steps = [str(s).strip() for s in (data.get("steps") or data.get("instructions") or [])]
    steps = [s for s in steps if s]
    if not ingredients:
        raise MalformedProviderResponse(provider, "recipe has no ingredients")
    if not steps:
        raise MalformedProviderResponse(provider, "recipe has no steps")

    difficulty = str(data.get("difficulty") or "medium").lower()
    content = RecipeContent(
        title=str(data.get("title") or data.get("name") or "Unnamed Recipe").strip(),
        description=str(data.get("description") or ""),
        cuisine=spec.cuisine or str(data.get("cuisine") or "international"),
        diet=spec.diet or str(data.get("diet") or "balanced"),
        servings=int(_number(data.get("servings"), spec.servings)),
        difficulty=difficulty if difficulty in _DIFFICULTIES else "medium",
        ingredients=ingredients,
        steps=steps,
        prep_time_min=int(_number(data.get("prep_time_min", data.get("prep_time")), 15)),
        cook_time_min=int(_number(data.get("cook_time_min", data.get("cook_time")), 20)),
        allergen_flags=[str(a) for a in data.get("allergen_flags") or []],
        tags=[str(t) for t in data.get("tags") or []],
    )
    return content, _nutrition(data, spec)


def _load_object(payload: str, provider: str) -> dict[str, Any]:
    text = payload.strip()
    if text.startswith("```"):
        lines = [ln for ln in text.split("\n") if not ln.strip().startswith("```")]
        text = "\n".join(lines)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedProviderResponse(provider, f"invalid recipe JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedProviderResponse(provider, "recipe payload is not an object")
    return data


def _ingredient(raw: Any) -> RecipeIngredient | None:
    if isinstance(raw, str):
        return RecipeIngredient(item=raw.strip()) if raw.strip() else None
    if not isinstance(raw, dict):
        return None
    item = str(raw.get("item") or raw.get("name") or "").strip()
    if not item:
        logger.debug("Skipping ingredient without a name: %r", raw)
        return None
    quantity = raw.get("qty") or raw.get("quantity")
    if quantity is None and raw.get("amount"):
        quantity = f"{raw['amount']} {raw.get('unit', '')}".strip()
    return RecipeIngredient(
        item=item,
        quantity=str(quantity or ""),
        grams=_number(raw.get("grams"), 0.0),
    )


def _nutrition(data: dict[str, Any], spec: GenerationSpec) -> NutrientTotals:
    macros = data.get("macros") if isinstance(data.get("macros"), dict) else {}
    legacy = data.get("nutrition") if isinstance(data.get("nutrition"), dict) else {}
    targets = {"calories": float(spec.calorie_target), "protein": float(spec.protein_target)}

    values: dict[str, float] = {}
    for field, (key, legacy_key, default) in _MACROS.items():
        fallback = targets[field] if default is None else default
        values[field] = _number(macros.get(key, legacy.get(legacy_key)), fallback)
    return NutrientTotals(**values)


def _number(value: Any, default: float) -> float:
    """Coerce to a positive float; zero, missing or garbage yields default."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default
