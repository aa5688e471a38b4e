"""
LLM Providers

Providers are registered under a canonical name together with the
environment variable holding their API key. Aliases map vendor names
onto the canonical ones.
"""

from __future__ import annotations

import os

from cadence.llm.providers.base import BaseLLMProvider
from cadence.llm.providers.claude import ClaudeProvider
from cadence.llm.providers.openai import OpenAIProvider

PROVIDERS: dict[str, tuple[type[BaseLLMProvider], str]] = {
    "claude": (ClaudeProvider, "ANTHROPIC_API_KEY"),
    "openai": (OpenAIProvider, "OPENAI_API_KEY"),
}

ALIASES = {"anthropic": "claude", "gpt": "openai"}


def canonical_name(provider_name: str) -> str:
    """Resolve a provider name or alias; raises ValueError if unknown."""
    name = provider_name.strip().lower()
    name = ALIASES.get(name, name)
    if name not in PROVIDERS:
        raise ValueError(
            f"Unknown provider: {provider_name}. "
            f"Available: {sorted([*PROVIDERS, *ALIASES])}"
        )
    return name


def get_provider(
    provider_name: str,
    api_key: str,
    model: str | None = None,
) -> BaseLLMProvider:
    """
    Get an LLM provider by name.

    Args:
        provider_name: canonical name or alias
        api_key: API key for the provider
        model: Optional model override
    """
    provider_class, _ = PROVIDERS[canonical_name(provider_name)]
    kwargs = {"api_key": api_key}
    if model:
        kwargs["model"] = model
    return provider_class(**kwargs)


def provider_from_env(provider_name: str, model: str | None = None) -> BaseLLMProvider | None:
    """Build a provider from its environment key, or None when the key is unset."""
    name = canonical_name(provider_name)
    api_key = os.environ.get(PROVIDERS[name][1])
    if not api_key:
        return None
    return get_provider(name, api_key, model)


__all__ = [
    "ALIASES",
    "PROVIDERS",
    "BaseLLMProvider",
    "ClaudeProvider",
    "OpenAIProvider",
    "canonical_name",
    "get_provider",
    "provider_from_env",
]
