# src/llm/adapters/openai_adapter.py — v3
"""OpenAI chat completions plus Whisper transcription (openai.AsyncOpenAI).

This is the only adapter that can turn voice recordings into text.
"""

from __future__ import annotations

from typing import Any

import openai

from nutriresolve.llm.base_client import BaseLLMClient
from nutriresolve.llm.models import AudioInput, CompletionRequest, LLMResponse


class OpenAIAdapter(BaseLLMClient):
    provider_name = "openai"

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        transcription_model: str = "whisper-1",
        **kwargs: Any,
    ) -> None:
        super().__init__(model, api_key)
        self._transcription_model = transcription_model

    def _connect(self) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(api_key=self._api_key or None)

    async def _send(self, request: CompletionRequest) -> LLMResponse:
        params: dict[str, Any] = {
            "model": self._model,
            "messages": self._messages(request),
            "max_tokens": request.max_tokens,
        }
        if request.temperature is not None:
            params["temperature"] = request.temperature
        if request.json_mode:
            params["response_format"] = {"type": "json_object"}

        reply = await self.sdk.chat.completions.create(**params)
        usage = reply.usage
        return LLMResponse(
            content=reply.choices[0].message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=self._model,
            provider=self.provider_name,
            raw_response=reply,
        )

    async def transcribe(self, audio: AudioInput) -> str:
        result = await self.sdk.audio.transcriptions.create(
            model=self._transcription_model,
            file=(audio.filename, audio.data),
        )
        return result.text

    @staticmethod
    def _messages(request: CompletionRequest) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        if request.system:
            out.append({"role": "system", "content": request.system})
        if not request.images:
            out.extend({"role": m.role, "content": m.content} for m in request.messages)
            return out
        parts: list[dict[str, Any]] = [
            {"type": "text", "text": m.content} for m in request.messages
        ]
        parts.extend(
            {"type": "image_url", "image_url": {"url": f"data:{img.media_type};base64,{img.b64()}"}}
            for img in request.images
        )
        out.append({"role": "user", "content": parts})
        return out
