# src/llm/models.py — v3
"""Request/response types shared by the LLM adapters."""

from __future__ import annotations

import base64
from typing import Any, Literal

from pydantic import BaseModel, Field

# Leading magic bytes of the photo formats phones and label scanners send
_IMAGE_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF8", "image/gif"),
)


class Message(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ImageInput(BaseModel):
    """Raw image bytes plus the media type the vision API should be told."""

    data: bytes
    media_type: str = "image/jpeg"

    @classmethod
    def from_bytes(cls, data: bytes, media_type: str | None = None) -> ImageInput:
        """Build an input, sniffing the media type when the caller has none."""
        return cls(data=data, media_type=media_type or sniff_media_type(data))

    def b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class AudioInput(BaseModel):
    data: bytes
    filename: str = "voice.webm"


class CompletionRequest(BaseModel):
    """Everything an adapter needs for one round-trip.

    ``temperature`` is None for vision calls, which use the provider default.
    """

    messages: list[Message]
    system: str | None = None
    images: list[ImageInput] = Field(default_factory=list)
    max_tokens: int = 1500
    temperature: float | None = 0.2
    json_mode: bool = False

    def user_text(self) -> str:
        return "\n".join(m.content for m in self.messages if m.role == "user")


class LLMResponse(BaseModel):
    """Normalized completion result."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str
    provider: str
    latency_ms: int = 0
    raw_response: Any = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def sniff_media_type(data: bytes) -> str:
    for signature, media_type in _IMAGE_SIGNATURES:
        if data.startswith(signature):
            return media_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
