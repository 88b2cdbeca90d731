# tests/unit/core/test_models.py — v1
"""Tests for core/models.py and core/errors.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from nutriresolve.core.errors import GenerationExhausted, NotFound, ProviderTimeout
from nutriresolve.core.models import (
    FoodItem,
    NutrientRecord,
    NutrientTotals,
    RecipeContent,
    RecipeIngredient,
    RequestKind,
    ResolutionRequest,
    ResolvedResult,
    SimilarityFingerprint,
)


class TestResolutionRequest:
    @pytest.mark.parametrize(
        ("kind", "payload"),
        [
            (RequestKind.TEXT, "banana"),
            (RequestKind.BARCODE, "3017620422003"),
            (RequestKind.IMAGE, b"\xff\xd8"),
            (RequestKind.VOICE, "one banana"),
            (RequestKind.VOICE, b"RIFF"),
        ],
    )
    def test_valid_payloads(self, kind, payload):
        assert ResolutionRequest(kind=kind, payload=payload).payload == payload

    @pytest.mark.parametrize(
        ("kind", "payload"),
        [
            (RequestKind.IMAGE, "not bytes"),
            (RequestKind.TEXT, b"bytes"),
            (RequestKind.BARCODE, b"123"),
        ],
    )
    def test_invalid_payloads(self, kind, payload):
        with pytest.raises(ValidationError):
            ResolutionRequest(kind=kind, payload=payload)

    def test_frozen(self):
        request = ResolutionRequest(kind="text", payload="x")
        with pytest.raises(ValidationError):
            request.payload = "y"  # type: ignore[misc]

    def test_is_binary(self):
        assert ResolutionRequest(kind="image", payload=b"x").is_binary
        assert not ResolutionRequest(kind="text", payload="x").is_binary


class TestNutrients:
    def test_totals_from_record(self):
        record = NutrientRecord(name="x", calories=10, protein=1, sodium=5)
        totals = NutrientTotals.from_record(record)
        assert (totals.calories, totals.protein, totals.sodium) == (10, 1, 5)

    def test_food_confidence_bounds(self):
        with pytest.raises(ValidationError):
            FoodItem(name="x", confidence=1.5)


class TestResolvedResult:
    def _result(self, **kw):
        data = dict(
            foods=[], totals=NutrientTotals(), provenance="cache", origin="structured-db",
            confidence=0.9, resolved_by="usda", cache_key="k", kind=RequestKind.TEXT,
        )
        data.update(kw)
        return ResolvedResult(**data)

    def test_is_verified(self):
        assert self._result().is_verified
        assert not self._result(origin="generative").is_verified
        assert not self._result(degraded=True).is_verified

    def test_unknown_provenance_rejected(self):
        with pytest.raises(ValidationError):
            self._result(provenance="guess")


class TestRecipeModels:
    def test_similarity_text(self):
        content = RecipeContent(
            title="Bowl",
            ingredients=[RecipeIngredient(item="rice"), RecipeIngredient(item="egg")],
            steps=["Cook", "Serve"],
        )
        assert content.similarity_text() == "Bowl rice egg Cook Serve"

    def test_fingerprint_hex_width(self):
        assert SimilarityFingerprint(value=255, width=16).hex() == "00ff"


class TestErrors:
    def test_messages(self):
        assert str(ProviderTimeout("usda", "slow")) == "usda: slow"
        assert str(ProviderTimeout("usda")) == "usda"
        exhausted = GenerationExhausted(3, 1, 2)
        assert "3 attempts" in str(exhausted)
        not_found = NotFound("barcode", "abc", ["open_food_facts"])
        assert "open_food_facts" in str(not_found)
        assert NotFound("text", "k").tried == []
