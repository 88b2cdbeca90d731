# tests/unit/providers/test_llm_generative.py — v1
"""Tests for providers/llm_generative.py — mock LLM client."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from nutriresolve.core.errors import (
    MalformedProviderResponse,
    NotFoundUpstream,
    ProviderUnavailable,
)
from nutriresolve.core.models import GenerationSpec
from nutriresolve.generation.prompts import compose_prompt
from nutriresolve.providers.llm_generative import LLMGenerativeProvider

ESTIMATE = {
    "foods": [
        {"name": "white rice", "quantity": 150, "unit": "g", "confidence": 0.8},
        {"name": "fried egg", "quantity": 1, "unit": "piece", "confidence": 1.7},
    ],
    "totals": {"calories": 285, "protein": 10.5, "carbs": 42, "fat": 7.8, "sodium": None},
}


class TestEstimateNutrition:
    @pytest.mark.asyncio
    async def test_valid_estimate(self, mock_llm):
        mock_llm.set_responses(json.dumps(ESTIMATE))
        provider = LLMGenerativeProvider(mock_llm)
        estimate = await provider.estimate_nutrition("rice with a fried egg")
        assert [f.name for f in estimate.foods] == ["white rice", "fried egg"]
        assert estimate.foods[1].confidence == 1.0  # clamped
        assert estimate.totals.calories == 285
        assert estimate.totals.sodium == 0.0
        call = mock_llm.calls[0]
        assert call["json_mode"] is True
        assert call["temperature"] == 0.2
        assert "rice with a fried egg" in call["messages"][0].content

    @pytest.mark.asyncio
    async def test_fenced_json(self, mock_llm):
        mock_llm.set_responses("```json\n" + json.dumps(ESTIMATE) + "\n```")
        estimate = await LLMGenerativeProvider(mock_llm).estimate_nutrition("rice")
        assert estimate.totals.protein == 10.5

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content",
        [
            "not json at all",
            "[1, 2, 3]",
            json.dumps({"foods": [], "totals": {"calories": 10}}),
            json.dumps({"foods": [{"name": "x"}], "totals": {"protein": 3}}),
            json.dumps({"foods": [{"quantity": 3}], "totals": {"calories": 3}}),
            json.dumps({"foods": [{"name": "x"}], "totals": {"calories": "many"}}),
        ],
    )
    async def test_malformed(self, mock_llm, content):
        mock_llm.set_responses(content)
        with pytest.raises(MalformedProviderResponse):
            await LLMGenerativeProvider(mock_llm).estimate_nutrition("x")


class TestExtractText:
    @pytest.mark.asyncio
    async def test_lines(self, mock_llm):
        mock_llm.set_responses("  Grilled chicken \n\n rice\n")
        text = await LLMGenerativeProvider(mock_llm).extract_text(b"\xff\xd8img", "image/png")
        assert text == "Grilled chicken\nrice"
        assert mock_llm.calls[0]["images"][0].media_type == "image/png"

    @pytest.mark.asyncio
    async def test_empty_image(self, mock_llm):
        mock_llm.set_responses("   \n ")
        with pytest.raises(NotFoundUpstream):
            await LLMGenerativeProvider(mock_llm).extract_text(b"img")

    @pytest.mark.asyncio
    async def test_no_vision(self, mock_llm_cls):
        client = mock_llm_cls(vision=False)
        with pytest.raises(ProviderUnavailable, match="vision"):
            await LLMGenerativeProvider(client).extract_text(b"img")
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_separate_vision_client(self, mock_llm_cls):
        text_client = mock_llm_cls(vision=False)
        vision_client = mock_llm_cls(default_response="apple")
        provider = LLMGenerativeProvider(text_client, vision_client=vision_client)
        assert await provider.extract_text(b"img") == "apple"
        assert len(vision_client.calls) == 1


class TestTranscribe:
    @pytest.mark.asyncio
    async def test_transcript(self, mock_llm_cls):
        client = mock_llm_cls(transcript="  one banana and a coffee ")
        assert await LLMGenerativeProvider(client).transcribe(b"audio") == "one banana and a coffee"

    @pytest.mark.asyncio
    async def test_unsupported(self, mock_llm):
        with pytest.raises(ProviderUnavailable, match="transcription"):
            await LLMGenerativeProvider(mock_llm).transcribe(b"audio")

    @pytest.mark.asyncio
    async def test_empty(self, mock_llm_cls):
        with pytest.raises(NotFoundUpstream):
            await LLMGenerativeProvider(mock_llm_cls(transcript=" ")).transcribe(b"audio")


class TestGenerateRecipe:
    @pytest.mark.asyncio
    async def test_forwards_prompt(self, mock_llm, recipe_payload):
        payload = recipe_payload("Bowl", ["rice"], ["Cook"])
        mock_llm.set_responses(payload)
        prompt = compose_prompt(GenerationSpec(cuisine="italian"), seed="s-1", temperature=0.9)
        assert await LLMGenerativeProvider(mock_llm).generate_recipe(prompt) == payload
        call = mock_llm.calls[0]
        assert call["system"] == prompt.system
        assert call["temperature"] == 0.9
        assert call["json_mode"] is True

    @pytest.mark.asyncio
    async def test_empty_payload(self, mock_llm):
        mock_llm.set_responses("  ")
        prompt = compose_prompt(GenerationSpec(), seed="s")
        with pytest.raises(MalformedProviderResponse):
            await LLMGenerativeProvider(mock_llm).generate_recipe(prompt)

    def test_name_includes_client(self, mock_llm):
        assert LLMGenerativeProvider(mock_llm).name == "generative:mock"


class TestImageMediaType:
    @pytest.mark.asyncio
    async def test_sniffed_when_unknown(self, mock_llm):
        mock_llm.set_responses("apple")
        await LLMGenerativeProvider(mock_llm).extract_text(b"\x89PNG\r\n\x1a\nbody")
        assert mock_llm.calls[0]["images"][0].media_type == "image/png"


class TestClose:
    @pytest.mark.asyncio
    async def test_closes_both_clients(self, mock_llm_cls):
        text_client, vision_client = mock_llm_cls(), mock_llm_cls()
        text_client.aclose = AsyncMock()
        vision_client.aclose = AsyncMock()
        await LLMGenerativeProvider(text_client, vision_client=vision_client).close()
        text_client.aclose.assert_awaited_once()
        vision_client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_shared_client_closed_once(self, mock_llm):
        mock_llm.aclose = AsyncMock()
        await LLMGenerativeProvider(mock_llm).close()
        mock_llm.aclose.assert_awaited_once()
