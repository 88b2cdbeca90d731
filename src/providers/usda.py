# src/providers/usda.py — v1
"""USDA FoodData Central search for text requests.

Nutrient IDs (USDA):
- 1008 / 2047: Energy (kcal)
- 1003: Protein (g)
- 1005: Carbohydrate (g)
- 1004: Total Fat (g)
- 1258: Saturated Fat (g)
- 1079: Fiber (g)
- 2000: Total Sugars (g)
- 1093: Sodium (mg)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from nutriresolve.core.errors import MalformedProviderResponse
from nutriresolve.core.models import NutrientRecord, RequestKind
from nutriresolve.providers.base_provider import BaseStructuredProvider

logger = logging.getLogger(__name__)

NUTRIENT_IDS: dict[int, str] = {
    1008: "calories",
    2047: "calories",
    1003: "protein",
    1005: "carbs",
    1004: "fat",
    1258: "saturated_fat",
    1079: "fiber",
    2000: "sugar",
    1093: "sodium",
}


class UsdaFoodDataProvider(BaseStructuredProvider):
    """Free text → best matching FoodData Central food."""

    kinds = frozenset({RequestKind.TEXT})

    def __init__(
        self,
        api_key: str = "DEMO_KEY",
        base_url: str = "https://api.nal.usda.gov/fdc/v1",
        data_types: tuple[str, ...] = ("Foundation", "SR Legacy"),
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout=timeout)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._data_types = data_types
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return "usda"

    async def lookup(self, query: str) -> NutrientRecord | None:
        query = query.strip()
        if not query:
            return None
        response = await self._http().get(
            f"{self._base_url}/foods/search",
            params={
                "query": query,
                "pageSize": 1,
                "dataType": ",".join(self._data_types),
                "api_key": self._api_key,
            },
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()

        data = response.json()
        foods = data.get("foods") if isinstance(data, dict) else None
        if foods is None:
            raise MalformedProviderResponse(self.name, "search response has no 'foods'")
        if not foods:
            return None
        return self._to_record(foods[0])

    def _to_record(self, food: dict[str, Any]) -> NutrientRecord:
        nutrients = food.get("foodNutrients")
        if not food.get("description") or not isinstance(nutrients, list):
            raise MalformedProviderResponse(self.name, "food entry lacks description or nutrients")

        values: dict[str, float] = {}
        for nutrient in nutrients:
            field = NUTRIENT_IDS.get(nutrient.get("nutrientId"))
            value = nutrient.get("value")
            if field is None or value is None or field in values:
                continue
            try:
                values[field] = float(value)
            except (TypeError, ValueError) as e:
                raise MalformedProviderResponse(self.name, f"bad nutrient value {value!r}") from e

        if "calories" not in values:
            raise MalformedProviderResponse(self.name, f"no energy value for {food['description']!r}")

        return NutrientRecord(
            name=food["description"],
            source_id=str(food.get("fdcId", "")) or None,
            brand=food.get("brandOwner"),
            **values,
        )

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
