"""LLM adapter layer: OpenAI and Anthropic behind a common protocol."""

from blogagent.config import Settings
from blogagent.llm.anthropic_provider import AnthropicProvider
from blogagent.llm.base import LLMProvider, extract_json, strip_code_fence
from blogagent.llm.openai_provider import OpenAIProvider


def get_provider(provider_name: str, **kwargs: object) -> LLMProvider:
    """Return the configured LLM provider. provider_name: 'openai' | 'anthropic'."""
    if provider_name.lower() == "anthropic":
        return AnthropicProvider(**kwargs)
    return OpenAIProvider(**kwargs)


def provider_from_settings(settings: Settings) -> LLMProvider:
    """Build the provider named in settings; raises ValueError without an API key."""
    provider_name = settings.blog_llm_provider.lower()
    if provider_name == "anthropic":
        api_key, model = settings.anthropic_api_key, settings.blog_anthropic_model
    else:
        api_key, model = settings.openai_api_key, settings.blog_openai_model
    if not api_key:
        raise ValueError(f"API key not configured for provider '{provider_name}'.")
    return get_provider(provider_name, api_key=api_key, model=model)


__all__ = [
    "LLMProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "extract_json",
    "strip_code_fence",
    "get_provider",
    "provider_from_settings",
]
