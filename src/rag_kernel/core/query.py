"""
Query Processing - End-to-end RAG query over the kernel

Indexes documents into a memory collection and answers questions by
retrieving the most relevant chunks and running an answer prompt through
the kernel.

License: MIT
"""

from typing import List, Dict, Any, Optional
from pathlib import Path
import logging
import time

from ..exceptions import InvalidArgumentError
from ..orchestration.functions import ParameterSpec, SemanticFunction
from ..orchestration.kernel import Kernel
from ..utils.cancellation import CancellationToken
from ..utils.helpers import Timer, format_duration
from .document_processor import DocumentProcessor
from .memory_store import MemoryStore, SearchResult
from .text_generation import GenerationSettings

logger = logging.getLogger(__name__)

ANSWER_SKILL = "rag"
ANSWER_FUNCTION = "answer"

NO_RESULTS_ANSWER = "I couldn't find any relevant information to answer your question."

DEFAULT_ANSWER_TEMPLATE = """Context:
{{context}}

Question: {{question}}

Please provide a comprehensive answer based on the context above. If the context doesn't contain sufficient information to fully answer the question, please indicate what information is missing.

Answer:"""


class RAGQueryProcessor:
    """
    End-to-end RAG query processor.

    Combines chunking, semantic memory and an answer function registered
    with the kernel as ``rag.answer``.
    """

    def __init__(
        self,
        kernel: Kernel,
        collection: str = "documents",
        document_processor: Optional[DocumentProcessor] = None,
        answer_template: str = DEFAULT_ANSWER_TEMPLATE,
        answer_settings: Optional[GenerationSettings] = None,
    ):
        """
        Initialize the RAG query processor.

        Args:
            kernel: Kernel holding the text generator and memory
            collection: Memory collection documents are indexed into
            document_processor: Chunking front-end, defaults to standard budgets
            answer_template: Prompt with ``{{context}}`` and ``{{question}}``
            answer_settings: Generation settings for the answer prompt

        Raises:
            InvalidArgumentError: If the kernel has no memory
        """
        if kernel.memory is None:
            raise InvalidArgumentError("RAGQueryProcessor requires a kernel with memory")

        self.kernel = kernel
        self.collection = collection
        self.document_processor = document_processor or DocumentProcessor()

        if kernel.registry.has(ANSWER_SKILL, ANSWER_FUNCTION):
            self.answer_function = kernel.func(ANSWER_SKILL, ANSWER_FUNCTION)
        else:
            self.answer_function = kernel.register_semantic_function(
                ANSWER_SKILL,
                ANSWER_FUNCTION,
                answer_template,
                settings=answer_settings or GenerationSettings(max_tokens=1000, temperature=0.1),
                parameters=[
                    ParameterSpec("context", "Retrieved passages"),
                    ParameterSpec("question", "User's question"),
                ],
                description="Answer a question from retrieved context",
            )

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
        """
        Chunk a document and save every chunk to the collection.

        Args:
            text: Document text
            document_id: Identifier used as the record id prefix and source
            markdown: Split on markdown structure
            cancellation_token: Optional caller abort signal

        Returns:
            Record ids of the saved chunks
        """
        if not document_id:
            raise InvalidArgumentError("Document id cannot be empty")

        chunks = self.document_processor.create_chunks(text, document_id, markdown=markdown)
        if not chunks:
            logger.warning(f"Document {document_id} produced no chunks")
            return []

        return await self.memory.save_many(
            self.collection,
            chunks,
            id_prefix=document_id,
            cancellation_token=cancellation_token,
        )

    async def index_file(
        self, file_path: str, cancellation_token: Optional[CancellationToken] = None
    ) -> List[str]:
        """Parse, chunk and save a .pdf, .docx, .txt or .md file."""
        path = Path(file_path)
        chunks = self.document_processor.process_file(path)
        if not chunks:
            logger.warning(f"File {file_path} produced no chunks")
            return []

        return await self.memory.save_many(
            self.collection,
            chunks,
            id_prefix=path.stem,
            cancellation_token=cancellation_token,
        )

    async def query(
        self,
        question: str,
        limit: int = 5,
        min_relevance: float = 0.0,
        max_context_length: int = 8000,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Dict[str, Any]:
        """
        Process a complete RAG query.

        Args:
            question: User's question
            limit: Number of chunks to retrieve
            min_relevance: Lowest relevance to include
            max_context_length: Maximum context length in characters
            cancellation_token: Optional caller abort signal

        Returns:
            Dictionary containing answer, sources, confidence and metadata

        Raises:
            InvalidArgumentError: If question is empty
        """
        if not question or not question.strip():
            raise InvalidArgumentError("Question cannot be empty")

        start_time = time.time()
        logger.info(f"Processing query: {question[:100]}...")

        with Timer("Memory search") as search_timer:
            search_results = await self.memory.search(
                self.collection,
                question,
                limit=limit,
                min_relevance=min_relevance,
                cancellation_token=cancellation_token,
            )
        search_time = search_timer.elapsed_time

        if not search_results:
            logger.warning("No relevant documents found for query")
            return {
                "answer": NO_RESULTS_ANSWER,
                "sources": [],
                "confidence": 0.0,
                "metadata": {
                    "query_time": time.time() - start_time,
                    "search_time": search_time,
                    "num_sources": 0,
                },
            }

        context = self.kernel.create_new_context(
            question,
            {
                "question": question,
                "context": self._build_context(search_results, max_context_length),
            },
        )

        with Timer("Answer generation") as generation_timer:
            result = await self.kernel.run(
                self.answer_function, context=context, cancellation_token=cancellation_token
            )
        generation_time = generation_timer.elapsed_time

        total_time = time.time() - start_time
        logger.info(f"Query completed successfully in {format_duration(total_time)}")

        return {
            "answer": result.result,
            "sources": self._format_sources(search_results),
            "confidence": self._calculate_confidence(search_results),
            "metadata": {
                "query_time": total_time,
                "search_time": search_time,
                "generation_time": generation_time,
                "num_sources": len(search_results),
                "function": self.answer_function.qualified_name,
            },
        }

    def _build_context(self, search_results: List[SearchResult], max_length: int) -> str:
        """
        Build context string from search results.

        Args:
            search_results: Ranked search results
            max_length: Maximum context length in characters

        Returns:
            Formatted context string
        """
        context_parts = []
        current_length = 0

        for i, result in enumerate(search_results):
            content = result.text.strip()
            if not content:
                continue

            source_info = f"Source {i+1}"
            if result.record.description:
                source_info += f" ({result.record.description})"

            formatted_content = f"{source_info}:\n{content}\n"

            if current_length + len(formatted_content) > max_length:
                remaining_space = max_length - current_length - len(f"{source_info}:\n...\n")
                if remaining_space > 100:  # Only if we have reasonable space left
                    truncated_content = content[:remaining_space] + "..."
                    context_parts.append(f"{source_info}:\n{truncated_content}\n")
                break

            context_parts.append(formatted_content)
            current_length += len(formatted_content)

        return "\n".join(context_parts)

    def _format_sources(self, search_results: List[SearchResult]) -> List[Dict[str, Any]]:
        """Format search results as sources for the response."""
        sources = []

        for result in search_results:
            text = result.text
            sources.append(
                {
                    "id": result.id,
                    "score": round(result.relevance, 3),
                    "preview": text[:200] + "..." if len(text) > 200 else text,
                    "source_file": result.record.description or "Unknown",
                }
            )

        return sources

    def _calculate_confidence(self, search_results: List[SearchResult]) -> float:
        """
        Calculate confidence score based on search results.

        Args:
            search_results: Ranked search results

        Returns:
            Confidence score between 0 and 1
        """
        if not search_results:
            return 0.0

        top_score = search_results[0].relevance

        if top_score > 0.9:
            return 0.95
        elif top_score > 0.8:
            return 0.85
        elif top_score > 0.7:
            return 0.75
        elif top_score > 0.6:
            return 0.65
        else:
            return 0.5
