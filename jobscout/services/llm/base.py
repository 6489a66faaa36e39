"""Base class for LLM providers."""

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from jobscout.core.exceptions import MalformedResponseError

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL)
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    provider: str = ""

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    async def generate_json(
        self, system: str, prompt: str, *, temperature: float = 0.0
    ) -> dict[str, Any]:
        """Generate a JSON object.

        Args:
            system: System prompt describing the agent's role
            prompt: User prompt with the source material
            temperature: Sampling temperature

        Returns:
            Decoded JSON object

        Raises:
            MalformedResponseError: the model did not return a JSON object
            AIUnavailableError: the provider could not be reached
        """
        pass

    @property
    def is_local(self) -> bool:
        """Local models get shorter inputs."""
        return False

    @staticmethod
    def parse_json_object(content: str) -> dict[str, Any]:
        """Decode a model reply that should hold a single JSON object."""
        text = _THINK_BLOCK.sub("", content).strip()
        text = _CODE_FENCE.sub("", text).strip()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Invalid JSON from model: {e}", raw=content) from e
        if not isinstance(data, dict):
            raise MalformedResponseError("Model returned JSON that is not an object", raw=content)
        return data
