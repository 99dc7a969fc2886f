"""
Embedding Generator - Embedding provider contract and OpenAI adapter

The kernel only needs text in, fixed-length vectors out. Retry policy lives in
the adapter; callers see EmbeddingProviderError or ProviderTimeoutError once
retries are exhausted.

License: MIT
"""

from typing import List, Optional, Any
from abc import ABC, abstractmethod
import logging
import time

import openai

from ..exceptions import EmbeddingProviderError, InvalidArgumentError, ProviderTimeoutError
from ..infrastructure.monitoring import embedding_duration_tracker
from ..utils.helpers import chunk_list, retry_with_backoff

logger = logging.getLogger(__name__)


class EmbeddingGeneratorBase(ABC):
    """Abstract embedding provider."""

    model: str = "unknown"

    @abstractmethod
    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        """
        Embed a batch of texts.

        Args:
            texts: Texts to embed

        Returns:
            One vector per text, in input order
        """
        pass

    async def embed_query(self, query: str) -> List[float]:
        """
        Generate embedding for a single text.

        Raises:
            InvalidArgumentError: If query is empty
        """
        if not query.strip():
            raise InvalidArgumentError("Query cannot be empty")

        embeddings = await self.generate_embeddings([query])
        return embeddings[0]


class OpenAIEmbeddingGenerator(EmbeddingGeneratorBase):
    """
    Generate embeddings using OpenAI's embedding models.

    Supports batch processing and retries transient errors with backoff.
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        batch_size: int = 100,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        client: Any = None,
    ):
        """
        Initialize the embedding generator.

        Args:
            model: OpenAI embedding model to use
            batch_size: Number of texts to send per request
            api_key: API key; the OpenAI client default applies when omitted
            timeout: Per-request timeout in seconds
            max_retries: Retries for rate limit and connection errors
            client: Pre-built AsyncOpenAI client, mainly for tests
        """
        self.model = model
        self.batch_size = batch_size
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = client

    @property
    def client(self) -> Any:
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            # Retries are handled here, not by the SDK
            self._client = openai.AsyncOpenAI(
                api_key=self.api_key, timeout=self.timeout, max_retries=0
            )
        return self._client

    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: Texts to embed

        Returns:
            One vector per text, in input order

        Raises:
            EmbeddingProviderError: If the provider call fails
            ProviderTimeoutError: If the provider times out
        """
        if not texts:
            logger.warning("No texts provided for embedding generation")
            return []

        start_time = time.time()
        embeddings: List[List[float]] = []

        with embedding_duration_tracker():
            for batch in chunk_list(list(texts), self.batch_size):
                embeddings.extend(await self._process_batch(batch))

        logger.debug(
            f"Embedded {len(texts)} texts with {self.model} in {time.time() - start_time:.2f}s"
        )
        return embeddings

    async def _process_batch(self, batch: List[str]) -> List[List[float]]:
        """
        Process a single batch of texts.

        Args:
            batch: Texts to embed in one request
        """

        async def create():
            return await self.client.embeddings.create(input=batch, model=self.model)

        try:
            response = await retry_with_backoff(
                create,
                max_retries=self.max_retries,
                exceptions=(openai.RateLimitError, openai.APIConnectionError),
            )
        except openai.APITimeoutError as e:
            logger.error(f"Embedding request timed out: {str(e)}")
            raise ProviderTimeoutError(f"Embedding request timed out: {str(e)}") from e
        except openai.OpenAIError as e:
            logger.error(f"Error processing batch: {str(e)}")
            raise EmbeddingProviderError(f"Embedding request failed: {str(e)}") from e

        if len(response.data) != len(batch):
            raise EmbeddingProviderError(
                f"Provider returned {len(response.data)} embeddings for {len(batch)} texts"
            )

        return [list(item.embedding) for item in response.data]
