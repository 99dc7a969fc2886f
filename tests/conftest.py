"""
Test Configuration - Shared test fixtures and setup

This module provides common test fixtures and deterministic provider stubs
for the test suite.
"""

import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rag_kernel.core import (
    DocumentProcessor,
    EmbeddingGeneratorBase,
    GenerationSettings,
    InMemoryVectorStore,
    MemoryStore,
    TextChunker,
    TextGeneratorBase,
)
from rag_kernel.orchestration import Kernel


class StubEmbeddingGenerator(EmbeddingGeneratorBase):
    """
    Deterministic bag-of-words embeddings.

    Every word adds 1.0 to a dimension derived from its characters, so texts
    sharing words are similar. Exact vectors can be pinned per text.
    """

    model = "stub-embedding"

    def __init__(
        self,
        dimension: int = 16,
        vectors: Optional[Dict[str, Sequence[float]]] = None,
        delay: float = 0.0,
        fail_on: Optional[str] = None,
    ):
        self.dimension = dimension
        self.vectors = dict(vectors or {})
        self.delay = delay
        self.fail_on = fail_on
        self.calls: List[List[str]] = []

    def vector_for(self, text: str) -> List[float]:
        if text in self.vectors:
            return list(self.vectors[text])

        vector = [0.0] * self.dimension
        for word in text.lower().split():
            word = word.strip(".,;:!?")
            if word:
                vector[sum(ord(c) for c in word) % self.dimension] += 1.0
        return vector

    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on is not None and any(self.fail_on in text for text in texts):
            raise RuntimeError(f"embedding backend rejected {self.fail_on!r}")
        return [self.vector_for(text) for text in texts]


class StubTextGenerator(TextGeneratorBase):
    """Echoes prompts back, or returns a fixed response, and records every call."""

    model = "stub-generator"

    def __init__(
        self,
        response: Optional[str] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ):
        self.response = response
        self.delay = delay
        self.error = error
        self.prompts: List[str] = []
        self.settings: List[GenerationSettings] = []

    async def complete(self, prompt: str, settings: GenerationSettings) -> str:
        self.prompts.append(prompt)
        self.settings.append(settings)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response if self.response is not None else f"ECHO: {prompt}"


@pytest.fixture
def sample_documents() -> List[str]:
    """Sample documents for testing."""
    return [
        "Machine learning is a subset of artificial intelligence that enables computers to learn from data.",
        "Natural language processing helps computers understand and interpret human language effectively.",
        "Deep learning uses neural networks with multiple layers to recognize complex patterns in data.",
        "Retrieval-Augmented Generation combines information retrieval with text generation for better responses.",
        "Vector databases store high-dimensional embeddings for efficient similarity search applications.",
    ]


@pytest.fixture
def embedding_generator() -> StubEmbeddingGenerator:
    return StubEmbeddingGenerator()


@pytest.fixture
def text_generator() -> StubTextGenerator:
    return StubTextGenerator()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def memory(embedding_generator, vector_store) -> MemoryStore:
    """Memory store over the stub embedder and an in-memory index."""
    return MemoryStore(embedding_generator, vector_store)


@pytest.fixture
def kernel(text_generator, memory) -> Kernel:
    return Kernel(text_generator=text_generator, memory=memory)


@pytest.fixture
def chunker() -> TextChunker:
    return TextChunker(max_tokens_per_line=100, max_tokens_per_paragraph=1000)


@pytest.fixture
def document_processor() -> DocumentProcessor:
    """Document processor instance for testing."""
    return DocumentProcessor(max_tokens_per_line=20, max_tokens_per_paragraph=60)
