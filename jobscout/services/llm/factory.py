"""Factory for creating LLM providers."""

from jobscout.core.config import settings
from jobscout.services.llm.base import LLMProvider
from jobscout.services.llm.providers import (
    DeepSeekProvider,
    OllamaProvider,
    OpenAIProvider,
)

SUPPORTED_PROVIDERS = ("ollama", "openai", "deepseek")


def get_llm_provider(provider: str | None = None, model: str | None = None) -> LLMProvider:
    """Get an LLM provider instance.

    Args:
        provider: Provider name, defaults to the configured one
        model: Model name, defaults to the provider's configured model

    Raises:
        ValueError: unknown provider or missing API key
    """
    provider = provider or settings.llm_provider

    if provider == "ollama":
        return OllamaProvider(
            base_url=settings.ollama_base_url,
            model=model or settings.ollama_model,
        )
    if provider == "openai":
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is not configured")
        return OpenAIProvider(
            model=model or settings.openai_model,
            api_key=settings.openai_api_key,
            timeout=settings.llm_request_timeout,
        )
    if provider == "deepseek":
        if not settings.deepseek_api_key:
            raise ValueError("DEEPSEEK_API_KEY is not configured")
        return DeepSeekProvider(
            model=model or settings.deepseek_model,
            api_key=settings.deepseek_api_key,
            base_url=settings.deepseek_base_url,
            timeout=settings.llm_request_timeout,
        )
    raise ValueError(f"Unknown LLM provider: {provider}")
