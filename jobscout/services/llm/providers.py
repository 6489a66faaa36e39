import asyncio
import logging
from typing import Any

from openai import APIConnectionError, APIError, APIStatusError, APITimeoutError, OpenAI

from jobscout.core.exceptions import (
    AIUnavailableError,
    LLMRequestError,
    MalformedResponseError,
)
from jobscout.services.llm.base import LLMProvider

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(LLMProvider):
    """Provider for any endpoint speaking the OpenAI chat completions API."""

    provider = "openai"

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: str | None = None,
        timeout: float = 120.0,
        max_tokens: int = 2000,
    ):
        super().__init__(model)
        self.client = OpenAI(base_url=base_url, api_key=api_key, timeout=timeout)
        self.base_url = base_url
        self.max_tokens = max_tokens

    async def generate_json(
        self, system: str, prompt: str, *, temperature: float = 0.0
    ) -> dict[str, Any]:
        try:
            logger.info(f"Calling {self.provider} model {self.model}")
            response = await asyncio.to_thread(
                self.client.chat.completions.create,
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.max_tokens,
                temperature=temperature,
                response_format={"type": "json_object"},
            )
        except APITimeoutError as e:
            logger.error(f"LLM timeout: {e}")
            raise AIUnavailableError("LLM request timed out") from e
        except APIConnectionError as e:
            logger.error(f"LLM connection error: {e}")
            raise AIUnavailableError(f"Cannot reach {self.provider}: {e!s}") from e
        except APIStatusError as e:
            logger.error(f"LLM API error {e.status_code}: {e}")
            raise LLMRequestError(f"LLM API error: {e!s}", e.status_code) from e
        except APIError as e:
            logger.error(f"LLM API error: {e}")
            raise LLMRequestError(f"LLM API error: {e!s}") from e

        if not response.choices:
            raise MalformedResponseError("Empty response from LLM")
        content = response.choices[0].message.content
        if not content:
            raise MalformedResponseError("Empty content in response")
        logger.debug(f"{self.provider} response received, length: {len(content)}")
        return self.parse_json_object(content)


class OllamaProvider(OpenAICompatibleProvider):
    """Ollama LLM provider using OpenAI-compatible API."""

    provider = "ollama"

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.2",
        timeout: float = 300.0,
    ):
        super().__init__(
            model=model,
            api_key="ollama",  # Ollama doesn't require API key
            base_url=f"{base_url.rstrip('/')}/v1",
            timeout=timeout,
        )

    @property
    def is_local(self) -> bool:
        return True


class OpenAIProvider(OpenAICompatibleProvider):
    provider = "openai"


class DeepSeekProvider(OpenAICompatibleProvider):
    provider = "deepseek"
