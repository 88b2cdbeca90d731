# src/generation/prompts.py — v1
"""Recipe prompt composition.

A GenerationSpec plus a per-attempt seed becomes a RecipePrompt: a system
prompt, a user prompt with cuisine/diet constraints, and the JSON contract
the recipe parser validates against.
"""

from __future__ import annotations

from dataclasses import dataclass

from nutriresolve.core.models import GenerationSpec

SYSTEM_PROMPT = "You are a culinary expert and nutritionist. Output STRICT JSON only. No prose."

CUISINE_CONSTRAINTS: dict[str, dict[str, list[str]]] = {
    "mediterranean": {
        "techniques": ["grilling", "roasting", "olive oil cooking"],
        "staples": ["olive oil", "tomatoes", "herbs", "garlic", "lemon"],
    },
    "asian": {
        "techniques": ["stir-frying", "steaming", "quick cooking"],
        "staples": ["soy sauce", "ginger", "garlic", "rice", "sesame oil"],
    },
    "mexican": {
        "techniques": ["grilling", "sautéing", "spice blending"],
        "staples": ["cumin", "chili peppers", "lime", "cilantro", "onions"],
    },
    "italian": {
        "techniques": ["pasta cooking", "sauce making", "herb seasoning"],
        "staples": ["pasta", "tomatoes", "basil", "garlic", "parmesan"],
    },
    "american": {
        "techniques": ["grilling", "baking", "frying"],
        "staples": ["ground beef", "cheese", "bread", "potatoes", "bacon"],
    },
}

DIET_CONSTRAINTS: dict[str, dict[str, list[str]]] = {
    "vegan": {
        "forbidden": ["meat", "dairy", "eggs", "fish", "seafood", "honey"],
        "preferred": ["legumes", "nuts", "seeds", "vegetables", "fruits", "whole grains"],
    },
    "vegetarian": {
        "forbidden": ["meat", "fish", "seafood"],
        "preferred": ["dairy", "eggs", "vegetables", "legumes", "grains"],
    },
    "keto": {
        "forbidden": ["grains", "sugar", "high-carb fruits", "potatoes", "bread", "pasta"],
        "preferred": ["meat", "fish", "eggs", "cheese", "avocado", "nuts", "low-carb vegetables"],
    },
    "paleo": {
        "forbidden": ["grains", "dairy", "legumes", "processed foods"],
        "preferred": ["meat", "fish", "eggs", "vegetables", "fruits", "nuts", "seeds"],
    },
    "balanced": {
        "forbidden": [],
        "preferred": ["lean proteins", "whole grains", "vegetables", "fruits", "healthy fats"],
    },
}

_CONTRACT = """{
  "recipe_id": "uuid",
  "title": "string",
  "description": "one sentence",
  "cuisine": "%(cuisine)s",
  "diet": "%(diet)s",
  "servings": %(servings)d,
  "difficulty": "easy | medium | hard",
  "ingredients": [{"item": "", "qty": "", "grams": 0}],
  "steps": ["..."],
  "macros": {"cal": 0, "protein_g": 0, "carbs_g": 0, "fat_g": 0, "fiber_g": 0},
  "prep_time_min": 15,
  "cook_time_min": 20,
  "allergen_flags": ["contains_nuts", "contains_dairy"]
}"""


@dataclass(frozen=True)
class RecipePrompt:
    """Instruction handed to the generative provider for one attempt."""

    system: str
    user: str
    seed: str
    temperature: float = 0.8


def cuisine_constraints(cuisine: str | None) -> dict[str, list[str]]:
    """Techniques and staples for a cuisine; unknown cuisines use American."""
    if not cuisine:
        return {"techniques": [], "staples": []}
    return CUISINE_CONSTRAINTS.get(cuisine.lower(), CUISINE_CONSTRAINTS["american"])


def diet_constraints(diet: str | None) -> dict[str, list[str]]:
    """Forbidden and preferred ingredients; unknown diets use balanced."""
    if not diet:
        return {"forbidden": [], "preferred": []}
    return DIET_CONSTRAINTS.get(diet.lower(), DIET_CONSTRAINTS["balanced"])


def _join(items: tuple[str, ...] | list[str]) -> str:
    return ", ".join(items) if items else "none"


def compose_prompt(spec: GenerationSpec, seed: str, temperature: float = 0.8) -> RecipePrompt:
    """Build the prompt for one generation attempt."""
    cuisine = cuisine_constraints(spec.cuisine)
    diet = diet_constraints(spec.diet)

    lines = [
        f"- Cuisine: {spec.cuisine or 'any'}",
        f"- Diet: {spec.diet or 'none'}",
        f"- Calorie target/serving: {spec.calorie_target}",
        f"- Protein target/serving: {spec.protein_target}",
        f"- Servings: {spec.servings}",
        f"- Pantry must-use: {_join(spec.pantry_items + spec.ingredients)}",
        f"- Exclusions: {_join(spec.exclusions)}",
        f"- Random seed: {seed}",
    ]
    if spec.difficulty:
        lines.append(f"- Difficulty: {spec.difficulty}")
    if spec.max_cook_time_min:
        lines.append(f"- Max cook time: {spec.max_cook_time_min} minutes")

    constraints = [
        f"- Use authentic {spec.cuisine or 'global'} techniques & staple ingredients.",
        f"- Enforce {spec.diet or 'balanced'} restrictions; no violations.",
        "- Macros within ±7% of targets.",
        "- Unique from existing recipes (near-duplicates are rejected).",
        "- Keep steps concise, numbered, reproducible in home kitchens.",
    ]
    if cuisine["techniques"]:
        constraints.append(f"- Preferred techniques: {_join(cuisine['techniques'])}.")
        constraints.append(f"- Staples: {_join(cuisine['staples'])}.")
    if diet["forbidden"]:
        constraints.append(f"- Never use: {_join(diet['forbidden'])}.")
    if diet["preferred"]:
        constraints.append(f"- Favour: {_join(diet['preferred'])}.")

    contract = _CONTRACT % {
        "cuisine": spec.cuisine or "Global",
        "diet": spec.diet or "none",
        "servings": spec.servings,
    }
    user = (
        "\n".join(lines)
        + "\n\nConstraints:\n"
        + "\n".join(constraints)
        + "\n\nReturn JSON matching the contract exactly:\n"
        + contract
    )
    return RecipePrompt(system=SYSTEM_PROMPT, user=user, seed=seed, temperature=temperature)
