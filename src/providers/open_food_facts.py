# src/providers/open_food_facts.py — v1
"""Open Food Facts product lookup for barcode requests.

GET {base}/api/v2/product/{barcode}.json; status 0 or HTTP 404 means the
product is unknown. Nutriments are per 100 g; sodium is converted g → mg.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from nutriresolve.core.errors import MalformedProviderResponse
from nutriresolve.core.models import NutrientRecord, RequestKind
from nutriresolve.providers.base_provider import BaseStructuredProvider

logger = logging.getLogger(__name__)

_FIELDS = "product_name,brands,nutriments,code"
_NUTRIMENTS = {
    "calories": "energy-kcal_100g",
    "protein": "proteins_100g",
    "carbs": "carbohydrates_100g",
    "fat": "fat_100g",
    "saturated_fat": "saturated-fat_100g",
    "fiber": "fiber_100g",
    "sugar": "sugars_100g",
}


def normalize_barcode(raw: str) -> str:
    """Keep digits only (scanners and OCR add spaces and dashes)."""
    return re.sub(r"\D", "", raw)


class OpenFoodFactsProvider(BaseStructuredProvider):
    """Barcode → product nutriments via the public Open Food Facts API."""

    kinds = frozenset({RequestKind.BARCODE})

    def __init__(
        self,
        base_url: str = "https://world.openfoodfacts.org",
        user_agent: str = "nutriresolve/0.1",
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout=timeout)
        self._base_url = base_url.rstrip("/")
        self._user_agent = user_agent
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return "open_food_facts"

    async def lookup(self, query: str) -> NutrientRecord | None:
        barcode = normalize_barcode(query)
        if not 8 <= len(barcode) <= 14:
            logger.debug("Not a barcode: %r", query)
            return None

        response = await self._http().get(
            f"{self._base_url}/api/v2/product/{barcode}.json",
            params={"fields": _FIELDS},
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict):
            raise MalformedProviderResponse(self.name, "response is not an object")
        if data.get("status") != 1 or not data.get("product"):
            return None
        return self._to_record(barcode, data["product"])

    def _to_record(self, barcode: str, product: dict[str, Any]) -> NutrientRecord:
        nutriments = product.get("nutriments")
        if not isinstance(nutriments, dict) or not nutriments:
            raise MalformedProviderResponse(self.name, f"product {barcode} has no nutriments")

        values = {field: _number(nutriments.get(key)) for field, key in _NUTRIMENTS.items()}
        if values["calories"] == 0.0 and "energy_100g" in nutriments:
            values["calories"] = round(_number(nutriments["energy_100g"]) / 4.184, 1)
        values["sodium"] = round(_number(nutriments.get("sodium_100g")) * 1000, 3)

        return NutrientRecord(
            name=product.get("product_name") or f"Product {barcode}",
            brand=(product.get("brands") or None),
            source_id=barcode,
            **values,
        )

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self._user_agent}, follow_redirects=True
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def _number(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise MalformedProviderResponse("open_food_facts", f"non-numeric nutriment {value!r}") from e
