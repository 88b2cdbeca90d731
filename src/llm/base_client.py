# src/llm/base_client.py — v3
"""LLM client contract used by the generative provider.

Subclasses implement ``_connect`` (build the SDK client) and ``_send`` (one
completion round-trip). The public coroutines here normalize arguments into
a CompletionRequest, time the call and log token usage.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

from nutriresolve.llm.models import (
    AudioInput,
    CompletionRequest,
    ImageInput,
    LLMResponse,
    Message,
)

logger = logging.getLogger(__name__)


class BaseLLMClient(ABC):
    """One configured model at one provider."""

    provider_name: str = ""
    supports_vision: bool = True

    def __init__(self, model: str, api_key: str | None = None) -> None:
        self._model = model
        self._api_key = api_key
        self._sdk_client: Any = None

    @property
    def sdk(self) -> Any:
        """Provider SDK client, created on first use."""
        if self._sdk_client is None:
            self._sdk_client = self._connect()
        return self._sdk_client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 1500,
        temperature: float = 0.2,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Text completion. json_mode asks for a bare JSON object."""
        return await self._timed(
            CompletionRequest(
                messages=messages,
                system=system,
                max_tokens=max_tokens,
                temperature=temperature,
                json_mode=json_mode,
            )
        )

    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 500,
    ) -> LLMResponse:
        if not self.supports_vision:
            raise NotImplementedError(f"{self.provider_name} model {self._model} has no vision")
        return await self._timed(
            CompletionRequest(
                messages=messages,
                system=system,
                images=images,
                max_tokens=max_tokens,
                temperature=None,
            )
        )

    async def transcribe(self, audio: AudioInput) -> str:
        raise NotImplementedError(f"{self.provider_name} does not support transcription")

    async def aclose(self) -> None:
        if self._sdk_client is not None:
            await self._sdk_client.close()
            self._sdk_client = None

    async def _timed(self, request: CompletionRequest) -> LLMResponse:
        start = time.monotonic()
        response = await self._send(request)
        latency_ms = int((time.monotonic() - start) * 1000)
        logger.debug(
            "%s/%s: %d tokens in %dms",
            self.provider_name, response.model, response.total_tokens, latency_ms,
        )
        return response.model_copy(update={"latency_ms": latency_ms})

    @abstractmethod
    def _connect(self) -> Any:
        """Create the SDK client."""

    @abstractmethod
    async def _send(self, request: CompletionRequest) -> LLMResponse:
        """Perform one completion; latency is filled in by the caller."""
