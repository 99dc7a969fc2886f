"""
RAG Service - Wires configuration into a ready-to-use kernel

Builds providers, vector store, memory, kernel and query processor from a
RAGKernelConfig and exposes indexing, querying and health checks with
request-level logging.

License: MIT
"""

from typing import Any, Dict, List, Optional
import logging
import time

from .config import RAGKernelConfig, get_config
from .core.document_processor import DocumentProcessor
from .core.embedding_generator import EmbeddingGeneratorBase, OpenAIEmbeddingGenerator
from .core.memory_store import MemoryStore
from .core.query import RAGQueryProcessor
from .core.text_generation import GenerationSettings, OpenAITextGenerator, TextGeneratorBase
from .core.vector_store import ChromaVectorStore, InMemoryVectorStore, VectorStoreBase
from .exceptions import InvalidArgumentError
from .infrastructure.logging_config import setup_logging
from .infrastructure.monitoring import get_system_metrics, setup_prometheus_metrics
from .orchestration.kernel import Kernel
from .skills.text_memory_skill import TextMemorySkill
from .utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

MAX_QUERY_LIMIT = 20


def initialize_infrastructure(config: RAGKernelConfig) -> None:
    """Configure logging and metrics for a process; debug mode forces DEBUG logging."""
    setup_logging(
        level="DEBUG" if config.debug else config.logging.level,
        format_type=config.logging.format_type,
        log_file=config.logging.log_file,
        environment=config.environment,
    )
    if config.monitoring.prometheus_enabled:
        setup_prometheus_metrics()


def create_vector_store(config: RAGKernelConfig) -> VectorStoreBase:
    """Vector store for the configured backend."""
    backend = config.vector_store.backend
    if backend == "memory":
        return InMemoryVectorStore()
    if backend == "chroma":
        return ChromaVectorStore(persist_directory=config.vector_store.persist_directory)
    raise InvalidArgumentError(f"Unsupported vector store backend: {backend}")


class RAGService:
    """
    Production RAG service with comprehensive logging and error handling.
    """

    def __init__(self, kernel: Kernel, query_processor: RAGQueryProcessor, config: RAGKernelConfig):
        """
        Initialize the service.

        Args:
            kernel: Kernel with memory and text generator
            query_processor: Query pipeline bound to the kernel
            config: Resolved configuration
        """
        self.kernel = kernel
        self.query_processor = query_processor
        self.config = config

    @classmethod
    def from_config(
        cls,
        config: Optional[RAGKernelConfig] = None,
        embedding_generator: Optional[EmbeddingGeneratorBase] = None,
        text_generator: Optional[TextGeneratorBase] = None,
        vector_store: Optional[VectorStoreBase] = None,
        native_skills: Optional[Dict[str, Any]] = None,
    ) -> "RAGService":
        """
        Build every component from configuration.

        Components passed explicitly replace the configured ones. Prompt
        skills are loaded from each sub-directory of ``config.skills_dir``.

        Args:
            config: Configuration, the global one if omitted
            embedding_generator: Embedding provider override
            text_generator: Generative provider override
            vector_store: Vector store override
            native_skills: Skill objects to import before the registry is frozen, keyed by skill name

        Returns:
            A ready service
        """
        config = config or get_config()
        logger.info("Initializing RAG service components...")

        embedding_generator = embedding_generator or OpenAIEmbeddingGenerator(
            model=config.embedding.model,
            batch_size=config.embedding.batch_size,
            timeout=config.embedding.timeout,
            max_retries=config.embedding.max_retries,
        )
        text_generator = text_generator or OpenAITextGenerator(
            model=config.llm.model,
            timeout=config.llm.timeout,
            max_retries=config.llm.max_retries,
        )

        memory = MemoryStore(
            embedding_generator,
            vector_store or create_vector_store(config),
            timeout=config.memory.timeout,
            max_concurrency=config.memory.max_concurrency,
            batch_size=config.memory.batch_size,
            collection_not_found_fatal=config.memory.collection_not_found_fatal,
        )

        kernel = Kernel(text_generator=text_generator, memory=memory, generation_timeout=config.llm.timeout)
        kernel.import_skill(
            TextMemorySkill(
                memory,
                default_collection=config.memory.collection,
                default_relevance=config.memory.min_relevance,
                default_limit=config.memory.limit,
            ),
            "memory",
        )
        for skill_name, skill in (native_skills or {}).items():
            kernel.import_skill(skill, skill_name)
        if config.skills_dir:
            kernel.import_semantic_skills_from_directory(config.skills_dir)

        query_processor = RAGQueryProcessor(
            kernel,
            collection=config.memory.collection,
            document_processor=DocumentProcessor(
                max_tokens_per_line=config.chunking.max_tokens_per_line,
                max_tokens_per_paragraph=config.chunking.max_tokens_per_paragraph,
            ),
            answer_settings=GenerationSettings(
                max_tokens=config.llm.max_tokens, temperature=config.llm.temperature
            ),
        )
        kernel.freeze()

        logger.info("RAG service initialization completed")
        return cls(kernel, query_processor, config)

    @property
    def memory(self) -> MemoryStore:
        return self.kernel.memory

    async def index_document(
        self,
        text: str,
        document_id: str,
        markdown: bool = False,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> List[str]:
        """Chunk and store a document; returns the saved record ids."""
        start_time = time.time()
        record_ids = await self.query_processor.index_document(
            text, document_id, markdown=markdown, cancellation_token=cancellation_token
        )
        logger.info(
            "Document indexed",
            extra={
                "document_id": document_id,
                "num_chunks": len(record_ids),
                "processing_time": time.time() - start_time,
            },
        )
        return record_ids

    async def index_file(
        self, file_path: str, cancellation_token: Optional[CancellationToken] = None
    ) -> List[str]:
        """Parse, chunk and store a file; returns the saved record ids."""
        record_ids = await self.query_processor.index_file(file_path, cancellation_token)
        logger.info("File indexed", extra={"file_path": file_path, "num_chunks": len(record_ids)})
        return record_ids

    async def process_query(
        self,
        question: str,
        limit: Optional[int] = None,
        user_id: Optional[str] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Dict[str, Any]:
        """
        Process a query with comprehensive logging and error handling.

        Args:
            question: User's question
            limit: Number of chunks to retrieve, the configured limit if omitted
            user_id: User identifier for logging
            cancellation_token: Optional caller abort signal

        Returns:
            Dictionary containing answer, sources, confidence and metadata

        Raises:
            InvalidArgumentError: For invalid input
            RAGKernelError: For processing errors
        """
        limit = self.config.memory.limit if limit is None else limit
        start_time = time.time()
        query_id = f"{user_id}_{int(time.time())}" if user_id else f"anon_{int(time.time())}"

        try:
            logger.info(
                "Query started",
                extra={
                    "query_id": query_id,
                    "user_id": user_id,
                    "question_length": len(question or ""),
                    "limit": limit,
                },
            )

            if limit < 1 or limit > MAX_QUERY_LIMIT:
                raise InvalidArgumentError(f"limit must be between 1 and {MAX_QUERY_LIMIT}")

            result = await self.query_processor.query(
                question,
                limit=limit,
                min_relevance=self.config.memory.min_relevance,
                max_context_length=self.config.llm.max_context_length,
                cancellation_token=cancellation_token,
            )

            result["metadata"].update(
                {"query_id": query_id, "user_id": user_id, "processed_at": time.time()}
            )

            logger.info(
                "Query completed successfully",
                extra={
                    "query_id": query_id,
                    "user_id": user_id,
                    "processing_time": time.time() - start_time,
                    "num_sources": len(result.get("sources", [])),
                    "confidence": result.get("confidence", 0.0),
                },
            )

            return result

        except InvalidArgumentError as e:
            logger.warning(
                f"Invalid query: {str(e)}", extra={"query_id": query_id, "user_id": user_id}
            )
            raise

        except Exception as e:
            logger.error(
                "Query processing failed",
                extra={
                    "query_id": query_id,
                    "user_id": user_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "processing_time": time.time() - start_time,
                },
                exc_info=True,
            )
            raise

    async def health_check(self) -> Dict[str, Any]:
        """
        Health check of the vector store and embedding provider.

        Returns:
            Dictionary with health status, service details and metric summary
        """
        services = {}
        vector_store = self.memory.vector_store

        try:
            services["vector_store"] = {
                "healthy": vector_store.ping(),
                "backend": getattr(vector_store, "backend", type(vector_store).__name__),
            }
        except Exception as e:
            services["vector_store"] = {"healthy": False, "error": str(e)}

        generator = self.memory.embedding_generator
        try:
            test_embedding = await generator.embed_query("test")
            services["embedding_generator"] = {
                "healthy": len(test_embedding) > 0,
                "model": getattr(generator, "model", "unknown"),
            }
        except Exception as e:
            services["embedding_generator"] = {"healthy": False, "error": str(e)}

        all_healthy = all(service.get("healthy", False) for service in services.values())

        return {
            "healthy": all_healthy,
            "services": services,
            "metrics": get_system_metrics(),
            "timestamp": time.time(),
        }
