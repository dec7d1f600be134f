from __future__ import annotations

from ..types import LLMProvider, LLMProviderError, SummarizationConfig
from .anthropic import AnthropicProvider
from .base import BaseProvider
from .generic_openai import GenericOpenAIProvider


def build_provider(
    name: str,
    raw: dict,
    summarization: SummarizationConfig | None = None,
) -> LLMProvider:
    """Construct a provider from a ``providers`` config entry.

    ``type`` selects the client (``anthropic`` or ``generic_openai``); it
    defaults to the entry name when that is a known type.
    """
    summarization = summarization or SummarizationConfig()
    provider_type = raw.get("type", name)
    model = raw.get("model", summarization.model)
    temperature = raw.get("temperature", summarization.temperature)

    if provider_type == "anthropic":
        return AnthropicProvider(
            api_key=raw.get("api_key"),
            api_key_env=raw.get("api_key_env", "ANTHROPIC_API_KEY"),
            model=model,
            temperature=temperature,
        )
    if provider_type in ("generic_openai", "openai", "ollama"):
        return GenericOpenAIProvider(
            base_url=raw.get("base_url", "http://127.0.0.1:11434/v1"),
            model=model,
            temperature=temperature,
            api_key=raw.get("api_key", "not-needed"),
        )
    raise LLMProviderError(f"Unknown provider type: {provider_type}", provider=name)


__all__ = [
    "AnthropicProvider",
    "BaseProvider",
    "GenericOpenAIProvider",
    "LLMProviderError",
    "build_provider",
]
