"""
Text Generation - Generative provider contract and OpenAI adapter

License: MIT
"""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field, asdict
from abc import ABC, abstractmethod
import logging

import openai

from ..exceptions import GenerationProviderError, ProviderTimeoutError
from ..infrastructure.monitoring import llm_generation_duration_tracker
from ..utils.helpers import retry_with_backoff

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_MESSAGE = (
    "You are a helpful assistant that answers questions based on the provided context. "
    "Always base your answers on the given context. If the context doesn't contain "
    "enough information to answer the question, say so clearly."
)


@dataclass
class GenerationSettings:
    """Request settings for one completion."""

    max_tokens: int = 256
    temperature: float = 0.0
    top_p: float = 1.0
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    stop_sequences: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, settings: Dict[str, Any]) -> "GenerationSettings":
        """Build settings from a config.json ``completion`` section, ignoring unknown keys."""
        known = {name: settings[name] for name in cls.__dataclass_fields__ if name in settings}
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TextGeneratorBase(ABC):
    """Abstract generative provider."""

    model: str = "unknown"

    @abstractmethod
    async def complete(self, prompt: str, settings: GenerationSettings) -> str:
        """
        Generate text for a rendered prompt.

        Args:
            prompt: Fully rendered prompt
            settings: Generation settings

        Returns:
            Generated text
        """
        pass


class OpenAITextGenerator(TextGeneratorBase):
    """Chat-completion backed text generator."""

    def __init__(
        self,
        model: str = "gpt-4.1",
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 3,
        system_message: str = DEFAULT_SYSTEM_MESSAGE,
        client: Any = None,
    ):
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.system_message = system_message
        self._client = client

    @property
    def client(self) -> Any:
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self.api_key, timeout=self.timeout, max_retries=0
            )
        return self._client

    async def complete(self, prompt: str, settings: GenerationSettings) -> str:
        """
        Generate an answer for a rendered prompt.

        Raises:
            GenerationProviderError: If the provider call fails
            ProviderTimeoutError: If the provider times out
        """
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_message},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": settings.max_tokens,
            "temperature": settings.temperature,
            "top_p": settings.top_p,
            "presence_penalty": settings.presence_penalty,
            "frequency_penalty": settings.frequency_penalty,
        }
        if settings.stop_sequences:
            request["stop"] = settings.stop_sequences

        async def create():
            return await self.client.chat.completions.create(**request)

        try:
            with llm_generation_duration_tracker(self.model):
                response = await retry_with_backoff(
                    create,
                    max_retries=self.max_retries,
                    exceptions=(openai.RateLimitError, openai.APIConnectionError),
                )
        except openai.APITimeoutError as e:
            logger.error(f"Generation request timed out: {str(e)}")
            raise ProviderTimeoutError(f"Generation request timed out: {str(e)}") from e
        except openai.OpenAIError as e:
            logger.error(f"Error generating text: {str(e)}")
            raise GenerationProviderError(f"Generation request failed: {str(e)}") from e

        content = response.choices[0].message.content
        if content is None:
            raise GenerationProviderError("Provider returned an empty completion")

        return content.strip()
