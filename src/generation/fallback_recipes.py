# src/generation/fallback_recipes.py — v1
"""Static hand-authored recipes served when generation is exhausted."""

from __future__ import annotations

import random
from dataclasses import dataclass

from nutriresolve.core.models import (
    GenerationSpec,
    NutrientTotals,
    RecipeContent,
    RecipeIngredient,
)


@dataclass(frozen=True)
class FallbackRecipe:
    content: RecipeContent
    carbs: float
    fat: float
    fiber: float
    diets: frozenset[str]

    def nutrition(self, spec: GenerationSpec) -> NutrientTotals:
        return NutrientTotals(
            calories=float(spec.calorie_target),
            protein=float(spec.protein_target),
            carbs=self.carbs,
            fat=self.fat,
            fiber=self.fiber,
        )


CATALOG: tuple[FallbackRecipe, ...] = (
    FallbackRecipe(
        content=RecipeContent(
            title="Simple Veggie Stir-Fry",
            description="Quick and healthy vegetable stir-fry with minimal ingredients",
            difficulty="easy",
            ingredients=[
                RecipeIngredient(item="mixed vegetables", quantity="2 cups", grams=300),
                RecipeIngredient(item="olive oil", quantity="2 tbsp", grams=27),
                RecipeIngredient(item="garlic", quantity="2 cloves", grams=6),
                RecipeIngredient(item="soy sauce", quantity="2 tbsp", grams=32),
            ],
            steps=[
                "Heat olive oil in a large pan over medium-high heat",
                "Add minced garlic and cook for 30 seconds",
                "Add vegetables and stir-fry for 5-7 minutes",
                "Add soy sauce and cook for 2 more minutes",
                "Serve hot",
            ],
            prep_time_min=10,
            cook_time_min=15,
            allergen_flags=["contains_soy"],
            tags=["quick", "healthy", "vegetarian"],
        ),
        carbs=25,
        fat=15,
        fiber=6,
        diets=frozenset({"vegan", "vegetarian", "balanced"}),
    ),
    FallbackRecipe(
        content=RecipeContent(
            title="Basic Protein Bowl",
            description="Simple protein and grain bowl with vegetables",
            difficulty="easy",
            ingredients=[
                RecipeIngredient(item="quinoa", quantity="1 cup", grams=170),
                RecipeIngredient(item="chicken breast", quantity="8 oz", grams=227),
                RecipeIngredient(item="broccoli", quantity="1 cup", grams=90),
                RecipeIngredient(item="olive oil", quantity="2 tbsp", grams=27),
            ],
            steps=[
                "Cook quinoa according to package instructions",
                "Season and cook chicken in olive oil until done",
                "Steam broccoli until tender",
                "Combine all ingredients in bowls",
                "Season to taste and serve",
            ],
            prep_time_min=15,
            cook_time_min=20,
            tags=["protein", "healthy", "balanced"],
        ),
        carbs=40,
        fat=12,
        fiber=8,
        diets=frozenset({"balanced", "gluten-free"}),
    ),
    FallbackRecipe(
        content=RecipeContent(
            title="Spinach and Herb Omelette",
            description="Fluffy omelette folded over wilted spinach and fresh herbs",
            difficulty="easy",
            ingredients=[
                RecipeIngredient(item="eggs", quantity="4", grams=200),
                RecipeIngredient(item="baby spinach", quantity="2 cups", grams=60),
                RecipeIngredient(item="butter", quantity="1 tbsp", grams=14),
                RecipeIngredient(item="chives", quantity="1 tbsp", grams=3),
            ],
            steps=[
                "Whisk the eggs with a pinch of salt",
                "Melt butter in a non-stick pan over medium heat",
                "Wilt the spinach, then pour in the eggs",
                "Cook until just set, scatter chives and fold",
            ],
            prep_time_min=5,
            cook_time_min=8,
            allergen_flags=["contains_eggs", "contains_dairy"],
            tags=["low-carb", "quick"],
        ),
        carbs=4,
        fat=22,
        fiber=2,
        diets=frozenset({"keto", "vegetarian", "gluten-free", "balanced"}),
    ),
)


def candidates(spec: GenerationSpec) -> list[FallbackRecipe]:
    """Catalog entries compatible with the spec's diet and exclusions.

    Falls back to the whole catalog when nothing matches, so a recipe is
    always available.
    """
    pool = list(CATALOG)
    if spec.diet:
        by_diet = [r for r in pool if spec.diet.lower() in r.diets]
        pool = by_diet or pool
    if spec.exclusions:
        excluded = [e.lower() for e in spec.exclusions]
        allowed = [
            r for r in pool
            if not any(e in i.item.lower() for i in r.content.ingredients for e in excluded)
        ]
        pool = allowed or pool
    return pool


def select_fallback(
    spec: GenerationSpec,
    rng: random.Random | None = None,
) -> tuple[RecipeContent, NutrientTotals]:
    """Pick a fallback recipe for spec; returns a fresh copy of its content."""
    choice = (rng or random).choice(candidates(spec))
    content = choice.content.model_copy(
        deep=True,
        update={
            "cuisine": spec.cuisine or choice.content.cuisine,
            "diet": spec.diet or choice.content.diet,
            "servings": spec.servings,
        },
    )
    return content, choice.nutrition(spec)
