# src/llm/client_factory.py — v3
"""Build the LLM client behind the generative provider from LLM_PROVIDER.

Adapters are imported on first use so a deployment only needs the SDK of the
provider it actually talks to.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from functools import lru_cache

from nutriresolve.config.settings import Settings
from nutriresolve.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdapterEntry:
    """Where an adapter lives and which Settings field holds its API key."""

    class_path: str
    key_setting: str | None = None


_PROVIDER_REGISTRY: dict[str, AdapterEntry] = {
    "anthropic": AdapterEntry(
        "nutriresolve.llm.adapters.anthropic_adapter.AnthropicAdapter", "anthropic_api_key"
    ),
    "openai": AdapterEntry(
        "nutriresolve.llm.adapters.openai_adapter.OpenAIAdapter", "openai_api_key"
    ),
}


class UnsupportedProviderError(ValueError):
    """LLM_PROVIDER names no registered adapter."""


def available_providers() -> list[str]:
    return sorted(_PROVIDER_REGISTRY)


def register_provider(name: str, class_path: str, key_setting: str | None = None) -> None:
    """Make a third-party BaseLLMClient implementation selectable by name."""
    _PROVIDER_REGISTRY[name] = AdapterEntry(class_path, key_setting)
    logger.info("Registered LLM provider %s (%s)", name, class_path)


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the adapter registered under ``provider``.

    The API key comes from ``settings`` unless passed explicitly in kwargs.

    Raises:
        UnsupportedProviderError: Unknown provider name.
    """
    entry = _PROVIDER_REGISTRY.get(provider)
    if entry is None:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider {provider!r}; available: {', '.join(available_providers())}"
        )

    options = {**kwargs, "model": model}
    if settings is not None and entry.key_setting:
        options.setdefault("api_key", getattr(settings, entry.key_setting))

    adapter_cls = _load_adapter(entry.class_path)
    logger.debug("LLM client %s model=%s", provider, model)
    return adapter_cls(**options)


def create_from_settings(settings: Settings, model: str | None = None) -> BaseLLMClient:
    """Client for LLM_PROVIDER; ``model`` overrides LLM_MODEL (used for the vision model)."""
    return create_llm_client(settings.llm_provider, model or settings.llm_model, settings)


@lru_cache(maxsize=None)
def _load_adapter(class_path: str) -> type[BaseLLMClient]:
    module_path, _, class_name = class_path.rpartition(".")
    adapter_cls = getattr(importlib.import_module(module_path), class_name)
    if not (isinstance(adapter_cls, type) and issubclass(adapter_cls, BaseLLMClient)):
        raise TypeError(f"{class_path} is not a BaseLLMClient implementation")
    return adapter_cls
