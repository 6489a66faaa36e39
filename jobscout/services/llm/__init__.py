"""LLM providers."""

from jobscout.services.llm.base import LLMProvider
from jobscout.services.llm.factory import get_llm_provider

__all__ = ["LLMProvider", "get_llm_provider"]
