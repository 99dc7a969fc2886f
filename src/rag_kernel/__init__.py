"""
RAG Kernel - Retrieval-augmented generation core with function orchestration

This package provides the building blocks of a RAG system and a small
kernel that chains them:

Core
- Token-budgeted text chunking and document parsing
- Embedding and text generation providers
- Vector storage and collection-scoped semantic memory

Orchestration
- Context variables shared along a function chain
- Native functions and prompt-template semantic functions
- Sequential, fail-fast kernel with per-invocation records

Infrastructure
- Structured logging and Prometheus metrics
- Layered configuration

License: MIT
"""

__version__ = "1.0.0"

from .exceptions import (
    RAGKernelError,
    InvalidArgumentError,
    EmbeddingProviderError,
    GenerationProviderError,
    ProviderTimeoutError,
    CollectionNotFoundError,
    MissingContextVariableError,
    TemplateRenderError,
    TemplateSyntaxError,
    OperationCancelledError,
    FunctionNotFoundError,
    FunctionInvocationError,
)

# Core exports
from .core import (
    Chunk,
    TextChunker,
    DocumentProcessor,
    EmbeddingGeneratorBase,
    OpenAIEmbeddingGenerator,
    GenerationSettings,
    TextGeneratorBase,
    OpenAITextGenerator,
    VectorRecord,
    VectorStoreBase,
    InMemoryVectorStore,
    ChromaVectorStore,
    MemoryStore,
    SearchResult,
)

# Orchestration exports
from .orchestration import (
    ContextVariables,
    Kernel,
    KernelResult,
    NativeFunction,
    SemanticFunction,
    ParameterSpec,
    PromptTemplate,
    kernel_function,
)
from .skills import TextMemorySkill
from .core.query import RAGQueryProcessor

# Configuration exports
from .config import RAGKernelConfig, ConfigManager, get_config, get_config_manager
from .service import RAGService

# Utility exports
from .utils import CancellationToken

__all__ = [
    # Errors
    "RAGKernelError",
    "InvalidArgumentError",
    "EmbeddingProviderError",
    "GenerationProviderError",
    "ProviderTimeoutError",
    "CollectionNotFoundError",
    "MissingContextVariableError",
    "TemplateRenderError",
    "TemplateSyntaxError",
    "OperationCancelledError",
    "FunctionNotFoundError",
    "FunctionInvocationError",
    # Core
    "Chunk",
    "TextChunker",
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
    "RAGQueryProcessor",
    # Orchestration
    "ContextVariables",
    "Kernel",
    "KernelResult",
    "NativeFunction",
    "SemanticFunction",
    "ParameterSpec",
    "PromptTemplate",
    "kernel_function",
    "TextMemorySkill",
    # Configuration
    "RAGKernelConfig",
    "ConfigManager",
    "get_config",
    "get_config_manager",
    "RAGService",
    # Utilities
    "CancellationToken",
]
