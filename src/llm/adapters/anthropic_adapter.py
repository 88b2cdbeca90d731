# src/llm/adapters/anthropic_adapter.py — v4
"""Claude over the Messages API (anthropic.AsyncAnthropic).

Claude has no JSON response mode: json_mode appends an instruction to the
system prompt and the caller validates what comes back.
"""

from __future__ import annotations

from typing import Any

import anthropic

from nutriresolve.llm.base_client import BaseLLMClient
from nutriresolve.llm.models import CompletionRequest, LLMResponse

_JSON_ONLY = "Respond with a single JSON object and nothing else."


class AnthropicAdapter(BaseLLMClient):
    provider_name = "anthropic"

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(model, api_key)

    def _connect(self) -> anthropic.AsyncAnthropic:
        return anthropic.AsyncAnthropic(api_key=self._api_key or None)

    async def _send(self, request: CompletionRequest) -> LLMResponse:
        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": request.max_tokens,
            "messages": self._messages(request),
        }
        if request.temperature is not None:
            params["temperature"] = request.temperature
        system = request.system
        if request.json_mode:
            system = f"{system}\n\n{_JSON_ONLY}" if system else _JSON_ONLY
        if system:
            params["system"] = system

        reply = await self.sdk.messages.create(**params)
        return LLMResponse(
            content="".join(b.text for b in reply.content if getattr(b, "type", None) == "text"),
            input_tokens=reply.usage.input_tokens,
            output_tokens=reply.usage.output_tokens,
            model=reply.model,
            provider=self.provider_name,
            raw_response=reply,
        )

    @staticmethod
    def _messages(request: CompletionRequest) -> list[dict[str, Any]]:
        if not request.images:
            return [{"role": m.role, "content": m.content} for m in request.messages]
        # Vision: one user turn, images first then the prompt
        blocks: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": img.media_type, "data": img.b64()},
            }
            for img in request.images
        ]
        blocks.append({"type": "text", "text": request.user_text()})
        return [{"role": "user", "content": blocks}]
