# src/providers/local_table.py — v1
"""In-memory food table: offline lookups and a cheap first hop before HTTP."""

from __future__ import annotations

from collections.abc import Iterable

from nutriresolve.cache.keys import canonicalize_text
from nutriresolve.core.models import NutrientRecord, RequestKind
from nutriresolve.providers.base_provider import BaseStructuredProvider
from nutriresolve.providers.open_food_facts import normalize_barcode

COMMON_FOODS: tuple[NutrientRecord, ...] = (
    NutrientRecord(
        name="Bananas, raw", calories=89, protein=1.09, carbs=22.84, fat=0.33,
        fiber=2.6, sugar=12.23, sodium=1, source_id="banana",
    ),
    NutrientRecord(
        name="Chicken, broilers or fryers, breast, meat only, cooked, roasted",
        calories=165, protein=31.02, carbs=0, fat=3.57, fiber=0, sugar=0,
        sodium=74, source_id="chicken",
    ),
)

COMMON_PRODUCTS: tuple[NutrientRecord, ...] = (
    NutrientRecord(
        name="Nutella", brand="Ferrero", calories=539, protein=6.3, carbs=57.5,
        fat=30.9, saturated_fat=10.6, fiber=0, sugar=56.3, sodium=107,
        source_id="3017620422003",
    ),
)


class LocalFoodTable(BaseStructuredProvider):
    """Lookup against a fixed set of records.

    Text queries match a record key exactly, else the longest key contained
    in the query ("two ripe bananas" → "banana"). Barcodes match exactly.
    Records are keyed by their source_id.
    """

    def __init__(
        self,
        records: Iterable[NutrientRecord] = COMMON_FOODS,
        products: Iterable[NutrientRecord] = COMMON_PRODUCTS,
        timeout: float = 1.0,
    ) -> None:
        super().__init__(timeout=timeout)
        self._foods = {canonicalize_text(r.source_id or r.name): r for r in records}
        self._products = {normalize_barcode(r.source_id or ""): r for r in products}
        self._products.pop("", None)
        self.kinds = frozenset(
            k for k, table in ((RequestKind.TEXT, self._foods), (RequestKind.BARCODE, self._products))
            if table
        )

    @property
    def name(self) -> str:
        return "local_table"

    async def lookup(self, query: str) -> NutrientRecord | None:
        barcode = normalize_barcode(query)
        if barcode and barcode == query.strip().replace(" ", "").replace("-", ""):
            return self._products.get(barcode)

        text = canonicalize_text(query)
        if not text:
            return None
        if text in self._foods:
            return self._foods[text]
        matches = [key for key in self._foods if key in text]
        if not matches:
            return None
        return self._foods[max(matches, key=len)]
