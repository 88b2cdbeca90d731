# src/resolution/enricher.py — v1
"""Attach nutrition scoring, health suggestions and diet verdicts.

Scoring and diet checking are injected callables. Scores depend only on
the nutrients, so they are applied once before a result is cached; diet
verdicts depend on the requester and are applied to each caller's copy.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from nutriresolve.core.models import (
    DietaryPreferences,
    DietVerdict,
    NutrientTotals,
    NutritionScore,
    ResolvedResult,
)

logger = logging.getLogger(__name__)

Scorer = Callable[[NutrientTotals], NutritionScore]
DietChecker = Callable[[list[str], DietaryPreferences], dict[str, DietVerdict]]


def health_suggestions(score: NutritionScore) -> list[str]:
    """Suggestions derived from the score breakdown."""
    breakdown = score.breakdown
    suggestions: list[str] = []
    if breakdown.get("penalty_sugar", 0) > 10:
        suggestions.append(
            "Consider reducing sugar intake by choosing fresh fruits instead of processed sweets."
        )
    if breakdown.get("penalty_sodium", 0) > 20:
        suggestions.append(
            "This meal is high in sodium. Try using herbs and spices for flavor instead of salt."
        )
    if "bonus_fiber" in breakdown and breakdown["bonus_fiber"] < 5:
        suggestions.append(
            "Add more fiber with vegetables, fruits, or whole grains to support digestive health."
        )
    if "bonus_protein" in breakdown and breakdown["bonus_protein"] < 10:
        suggestions.append("Consider adding lean protein sources like chicken, fish, or legumes.")
    if score.score >= 85:
        suggestions.append("Excellent nutritional balance! This meal supports your health goals.")
    return suggestions


class ResultEnricher:
    """Apply the injected scorer and diet checker to resolved results."""

    def __init__(
        self,
        scorer: Scorer | None = None,
        diet_checker: DietChecker | None = None,
    ) -> None:
        self._scorer = scorer
        self._diet_checker = diet_checker

    def enrich_scores(self, result: ResolvedResult) -> ResolvedResult:
        """Set nutrition_score and health_suggestions in place."""
        if self._scorer is None or result.degraded:
            return result
        try:
            score = self._scorer(result.totals)
        except Exception:
            logger.warning("Nutrition scorer failed for %s", result.cache_key, exc_info=True)
            return result
        result.nutrition_score = score
        result.health_suggestions = health_suggestions(score)
        return result

    def annotate_diet(
        self,
        result: ResolvedResult,
        preferences: DietaryPreferences,
    ) -> ResolvedResult:
        """Set diet_compatibility in place for one requester's copy."""
        if self._diet_checker is None or result.degraded:
            return result
        if not preferences.diets and not preferences.allergens:
            return result
        try:
            verdicts = self._diet_checker([f.name for f in result.foods], preferences)
        except Exception:
            logger.warning("Diet checker failed for %s", result.cache_key, exc_info=True)
            return result
        result.diet_compatibility = dict(verdicts)
        return result
