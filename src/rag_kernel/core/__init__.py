"""
Core RAG Components - Fundamental building blocks for RAG systems

This module contains the essential components for implementing a RAG system:
- Text chunking and document processing
- Embedding and text generation providers
- Vector storage and semantic memory

The query pipeline lives in ``rag_kernel.core.query``; it depends on the
orchestration layer and is not imported here.

License: MIT
"""

from .text_chunker import Chunk, TextChunker, estimate_token_count, split_lines, split_paragraphs
from .document_processor import DocumentProcessor
from .embedding_generator import EmbeddingGeneratorBase, OpenAIEmbeddingGenerator
from .text_generation import GenerationSettings, TextGeneratorBase, OpenAITextGenerator
from .vector_store import VectorRecord, VectorStoreBase, InMemoryVectorStore, ChromaVectorStore
from .memory_store import MemoryStore, SearchResult

__all__ = [
    "Chunk",
    "TextChunker",
    "estimate_token_count",
    "split_lines",
    "split_paragraphs",
    "DocumentProcessor",
    "EmbeddingGeneratorBase",
    "OpenAIEmbeddingGenerator",
    "GenerationSettings",
    "TextGeneratorBase",
    "OpenAITextGenerator",
    "VectorRecord",
    "VectorStoreBase",
    "InMemoryVectorStore",
    "ChromaVectorStore",
    "MemoryStore",
    "SearchResult",
]
