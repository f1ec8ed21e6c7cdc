"""LLM client factory for the supported resolution providers.

Every provider except Anthropic is reached through the OpenAI-compatible
chat completions API using ``openai.AsyncOpenAI`` with a provider base URL.
Anthropic uses its own SDK.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from bioid.config import settings
from bioid.models.entities import ApiProvider


@dataclass(frozen=True)
class ProviderSpec:
    name: ApiProvider
    base_url: str | None
    key_setting: str
    model_setting: str
    json_mode: bool = True


PROVIDERS: dict[ApiProvider, ProviderSpec] = {
    ApiProvider.GEMINI: ProviderSpec(
        ApiProvider.GEMINI,
        "https://generativelanguage.googleapis.com/v1beta/openai/",
        "gemini_api_key",
        "gemini_model",
    ),
    ApiProvider.OPENAI: ProviderSpec(ApiProvider.OPENAI, None, "openai_api_key", "openai_model"),
    ApiProvider.GROQ: ProviderSpec(
        ApiProvider.GROQ, "https://api.groq.com/openai/v1", "groq_api_key", "groq_model"
    ),
    ApiProvider.ANTHROPIC: ProviderSpec(
        ApiProvider.ANTHROPIC, None, "anthropic_api_key", "anthropic_model", json_mode=False
    ),
    ApiProvider.COHERE: ProviderSpec(
        ApiProvider.COHERE,
        "https://api.cohere.ai/compatibility/v1",
        "cohere_api_key",
        "cohere_model",
    ),
    ApiProvider.MISTRAL: ProviderSpec(
        ApiProvider.MISTRAL, "https://api.mistral.ai/v1", "mistral_api_key", "mistral_model"
    ),
    ApiProvider.PERPLEXITY: ProviderSpec(
        ApiProvider.PERPLEXITY,
        "https://api.perplexity.ai",
        "perplexity_api_key",
        "perplexity_model",
        json_mode=False,
    ),
    ApiProvider.TOGETHER: ProviderSpec(
        ApiProvider.TOGETHER, "https://api.together.xyz/v1", "together_api_key", "together_model"
    ),
    ApiProvider.OPENROUTER: ProviderSpec(
        ApiProvider.OPENROUTER, None, "openrouter_api_key", "openrouter_model"
    ),
}

# Gemini is served with the deployment's own key, so callers may omit one.
FREE_PROVIDERS = frozenset({ApiProvider.GEMINI})


def requires_credential(provider: ApiProvider) -> bool:
    return provider not in FREE_PROVIDERS


def resolve_api_key(provider: ApiProvider, api_key: str | None = None) -> str:
    """Prefer the caller's key, fall back to the configured one."""
    if api_key and api_key.strip():
        return api_key.strip()
    return str(getattr(settings, PROVIDERS[provider].key_setting, "") or "").strip()


def has_credential(provider: ApiProvider, api_key: str | None = None) -> bool:
    return bool(resolve_api_key(provider, api_key))


def get_model(provider: ApiProvider, *, enable_ontology: bool = False) -> str:
    """Get the model id used for a provider.

    Gemini switches to the slower pro model when ontology lookup is enabled.
    """
    if provider == ApiProvider.GEMINI and enable_ontology and settings.gemini_ontology_model:
        return settings.gemini_ontology_model
    return getattr(settings, PROVIDERS[provider].model_setting)


def _base_url(spec: ProviderSpec) -> str | None:
    if spec.name == ApiProvider.OPENROUTER:
        return settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    return spec.base_url


def get_client(provider: ApiProvider, api_key: str) -> Any:
    """Build an async SDK client for the provider."""
    spec = PROVIDERS[provider]
    if provider == ApiProvider.ANTHROPIC:
        import anthropic

        return anthropic.AsyncAnthropic(api_key=api_key)

    from openai import AsyncOpenAI

    base_url = _base_url(spec)
    if base_url:
        return AsyncOpenAI(api_key=api_key, base_url=base_url)
    return AsyncOpenAI(api_key=api_key)


_clients: dict[tuple[ApiProvider, str], Any] = {}


def client(provider: ApiProvider, api_key: str) -> Any:
    """Get or create the client for a provider/key pair."""
    cache_key = (provider, api_key)
    if cache_key not in _clients:
        _clients[cache_key] = get_client(provider, api_key)
    return _clients[cache_key]


def clear_clients() -> None:
    _clients.clear()
