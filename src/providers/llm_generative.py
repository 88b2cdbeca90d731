# src/providers/llm_generative.py — v1
"""Generative provider backed by a BaseLLMClient.

Covers the four generative capabilities: label/food text extraction from
images (vision), speech-to-text, nutrition estimation from a description,
and raw recipe generation. Estimation output is validated here; recipe
payloads are validated by generation.recipe_parser.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from nutriresolve.core.errors import (
    MalformedProviderResponse,
    NotFoundUpstream,
    ProviderUnavailable,
)
from nutriresolve.core.models import FoodItem, GenerativeEstimate, NutrientTotals
from nutriresolve.llm.models import AudioInput, ImageInput, Message
from nutriresolve.providers.base_provider import BaseGenerativeProvider

if TYPE_CHECKING:
    from nutriresolve.generation.prompts import RecipePrompt
    from nutriresolve.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

_OCR_PROMPT = (
    "Extract all text and nutritional information from this image. "
    "Focus on nutrition facts, ingredient lists, and food names. "
    "Return a simple list of extracted text, one item per line."
)

_ESTIMATE_SYSTEM = "You are a registered dietitian. Respond only with valid JSON."

_ESTIMATE_PROMPT = """Estimate the nutrition of the food described below.

Description: {description}

Respond with a JSON object:
{{
  "foods": [{{"name": "food name", "quantity": 100, "unit": "g", "confidence": 0.0-1.0}}],
  "totals": {{"calories": 0, "protein": 0, "carbs": 0, "fat": 0, "fiber": 0,
             "sugar": 0, "sodium": 0, "saturated_fat": 0}}
}}

Totals cover every listed food. Sodium is in milligrams, everything else in grams."""


class LLMGenerativeProvider(BaseGenerativeProvider):
    """BaseGenerativeProvider over an LLM client (plus optional vision client)."""

    def __init__(
        self,
        client: BaseLLMClient,
        vision_client: BaseLLMClient | None = None,
        timeout: float = 30.0,
        analysis_temperature: float = 0.2,
        max_tokens: int = 1500,
    ) -> None:
        super().__init__(timeout=timeout)
        self._client = client
        self._vision = vision_client or client
        self._analysis_temperature = analysis_temperature
        self._max_tokens = max_tokens
        self.name = f"generative:{client.provider_name}"

    async def extract_text(self, image: bytes, media_type: str | None = None) -> str:
        if not self._vision.supports_vision:
            raise ProviderUnavailable(self.name, "configured model has no vision support")

        response = await self._vision.complete_with_vision(
            messages=[Message(role="user", content=_OCR_PROMPT)],
            images=[ImageInput.from_bytes(image, media_type)],
            max_tokens=500,
        )
        lines = [ln.strip() for ln in response.content.split("\n") if ln.strip()]
        if not lines:
            raise NotFoundUpstream(self.name, "no text found in image")
        logger.debug("Extracted %d lines from image", len(lines))
        return "\n".join(lines)

    async def transcribe(self, audio: bytes) -> str:
        try:
            transcript = await self._client.transcribe(AudioInput(data=audio))
        except NotImplementedError as e:
            raise ProviderUnavailable(self.name, str(e)) from e
        transcript = transcript.strip()
        if not transcript:
            raise NotFoundUpstream(self.name, "empty transcript")
        return transcript

    async def estimate_nutrition(self, description: str) -> GenerativeEstimate:
        response = await self._client.complete(
            messages=[
                Message(role="user", content=_ESTIMATE_PROMPT.format(description=description))
            ],
            system=_ESTIMATE_SYSTEM,
            max_tokens=self._max_tokens,
            temperature=self._analysis_temperature,
            json_mode=True,
        )
        data = self._parse_response(response.content)
        return self._build_estimate(data)

    async def generate_recipe(self, prompt: RecipePrompt) -> str:
        response = await self._client.complete(
            messages=[Message(role="user", content=prompt.user)],
            system=prompt.system,
            max_tokens=self._max_tokens,
            temperature=prompt.temperature,
            json_mode=True,
        )
        if not response.content.strip():
            raise MalformedProviderResponse(self.name, "empty recipe payload")
        return response.content

    async def close(self) -> None:
        await self._client.aclose()
        if self._vision is not self._client:
            await self._vision.aclose()

    def _parse_response(self, content: str) -> dict[str, Any]:
        text = content.strip()
        if text.startswith("```"):
            lines = text.split("\n")
            lines = [ln for ln in lines if not ln.strip().startswith("```")]
            text = "\n".join(lines)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedProviderResponse(self.name, f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedProviderResponse(self.name, "expected a JSON object")
        return data

    def _build_estimate(self, data: dict[str, Any]) -> GenerativeEstimate:
        foods: list[FoodItem] = []
        for raw in data.get("foods") or []:
            try:
                foods.append(
                    FoodItem(
                        name=str(raw["name"]).strip(),
                        quantity=float(raw.get("quantity", 100)),
                        unit=str(raw.get("unit", "g")),
                        confidence=min(max(float(raw.get("confidence", 0.5)), 0.0), 1.0),
                    )
                )
            except (KeyError, ValueError, TypeError) as exc:
                logger.debug("Skipping malformed food entry: %s", exc)
        foods = [f for f in foods if f.name]
        if not foods:
            raise MalformedProviderResponse(self.name, "estimate lists no foods")

        totals_raw = data.get("totals")
        if not isinstance(totals_raw, dict) or "calories" not in totals_raw:
            raise MalformedProviderResponse(self.name, "estimate has no calorie total")
        try:
            totals = NutrientTotals(**{k: v for k, v in totals_raw.items() if v is not None})
        except ValidationError as e:
            raise MalformedProviderResponse(self.name, f"bad totals: {e.error_count()} errors") from e
        return GenerativeEstimate(foods=foods, totals=totals)
