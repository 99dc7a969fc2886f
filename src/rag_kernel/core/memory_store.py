"""
Memory Store - Collection-scoped semantic memory over a vector store

Embeds text through the embedding provider and keeps one VectorRecord per
(collection, id). Searching embeds the query and ranks stored records by
cosine relevance.

License: MIT
"""

from typing import List, Dict, Any, Optional, Sequence, Tuple, Union
import asyncio
import logging

from ..exceptions import (
    CollectionNotFoundError,
    EmbeddingProviderError,
    InvalidArgumentError,
    RAGKernelError,
)
from ..infrastructure.monitoring import record_error, vector_search_duration_tracker
from ..utils.cancellation import CancellationToken, guarded_call
from ..utils.helpers import chunk_list, create_unique_id
from .embedding_generator import EmbeddingGeneratorBase
from .text_chunker import Chunk
from .vector_store import VectorRecord, VectorStoreBase

logger = logging.getLogger(__name__)


class SearchResult:
    """
    One ranked match returned by MemoryStore.search.
    """

    def __init__(self, record: VectorRecord, relevance: float):
        """
        Initialize search result.

        Args:
            record: Matched record
            relevance: Cosine relevance in [0, 1]
        """
        self.record = record
        self.relevance = relevance

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def text(self) -> str:
        return self.record.text

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.record.id,
            "collection": self.record.collection,
            "text": self.record.text,
            "description": self.record.description,
            "external_source_id": self.record.external_source_id,
            "relevance": self.relevance,
        }

    def __repr__(self) -> str:
        return f"SearchResult(id='{self.record.id}', relevance={self.relevance:.3f})"


class MemoryStore:
    """
    Semantic memory: save text, search by meaning.

    Bulk saves embed batches concurrently up to ``max_concurrency``; every
    provider call is bounded by ``timeout`` and honours a caller's
    CancellationToken.
    """

    def __init__(
        self,
        embedding_generator: EmbeddingGeneratorBase,
        vector_store: VectorStoreBase,
        timeout: Optional[float] = None,
        max_concurrency: int = 4,
        batch_size: int = 16,
        collection_not_found_fatal: bool = False,
    ):
        """
        Initialize the memory store.

        Args:
            embedding_generator: Embedding provider
            vector_store: Underlying vector index
            timeout: Deadline in seconds for each embedding call
            max_concurrency: Concurrent embedding calls during save_many
            batch_size: Texts per embedding call during save_many
            collection_not_found_fatal: Raise instead of returning [] when
                searching an empty collection
        """
        if max_concurrency < 1:
            raise InvalidArgumentError("max_concurrency must be at least 1")
        if batch_size < 1:
            raise InvalidArgumentError("batch_size must be at least 1")

        self.embedding_generator = embedding_generator
        self.vector_store = vector_store
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.batch_size = batch_size
        self.collection_not_found_fatal = collection_not_found_fatal

    async def _embed(
        self, texts: List[str], cancellation_token: Optional[CancellationToken]
    ) -> List[List[float]]:
        embeddings = await guarded_call(
            self.embedding_generator.generate_embeddings(texts),
            operation=f"Embedding {len(texts)} text(s)",
            error_class=EmbeddingProviderError,
            timeout=self.timeout,
            cancellation_token=cancellation_token,
        )

        if len(embeddings) != len(texts):
            raise EmbeddingProviderError(
                f"Provider returned {len(embeddings)} embeddings for {len(texts)} texts"
            )

        return embeddings

    async def save(
        self,
        collection: str,
        text: str,
        id: Optional[str] = None,
        description: str = "",
        external_source_id: str = "",
        additional_metadata: str = "",
        embedding: Optional[Sequence[float]] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> str:
        """
        Embed and upsert one piece of text.

        The record id is ``id`` when given, else ``external_source_id``, else a
        generated unique id. Saving again under the same id, or the same
        external_source_id, replaces the earlier record.

        Args:
            collection: Target collection
            text: Text to store
            id: Record id
            description: Free-form description
            external_source_id: Identifier of the text in its source system
            additional_metadata: Free-form metadata string
            embedding: Precomputed embedding; skips the provider call
            cancellation_token: Optional caller abort signal

        Returns:
            The record id

        Raises:
            InvalidArgumentError: If collection or text is empty
            EmbeddingProviderError: If the provider call fails
            ProviderTimeoutError: If the provider call exceeds the deadline
            OperationCancelledError: If the caller aborts
        """
        if not collection:
            raise InvalidArgumentError("Collection name cannot be empty")
        if not text or not text.strip():
            raise InvalidArgumentError("Text cannot be empty")

        try:
            if embedding is None:
                embedding = (await self._embed([text], cancellation_token))[0]

            record = VectorRecord(
                id=id or external_source_id or create_unique_id(collection),
                collection=collection,
                text=text,
                vector=tuple(float(x) for x in embedding),
                description=description,
                external_source_id=external_source_id,
                additional_metadata=additional_metadata,
            )
            record_id = self.vector_store.upsert(record)

        except RAGKernelError as e:
            logger.error(f"Error saving to collection {collection}: {str(e)}")
            record_error(type(e).__name__, "memory")
            raise

        logger.debug(f"Saved record {record_id} to collection {collection}")
        return record_id

    async def save_many(
        self,
        collection: str,
        chunks: Sequence[Union[Chunk, str]],
        id_prefix: Optional[str] = None,
        description: str = "",
        cancellation_token: Optional[CancellationToken] = None,
    ) -> List[str]:
        """
        Embed and upsert many chunks.

        Record ids are ``f"{id_prefix}-{sequence}"``; plain strings are
        numbered by position. All records are visible in the store when this
        returns. The first failure cancels outstanding work and propagates.

        Args:
            collection: Target collection
            chunks: Chunks or plain strings, in source order
            id_prefix: Id prefix, defaults to the collection name
            description: Description for records whose chunk has no source
            cancellation_token: Optional caller abort signal

        Returns:
            Record ids in input order
        """
        if not collection:
            raise InvalidArgumentError("Collection name cannot be empty")

        items: List[Tuple[int, str, str]] = []
        for position, chunk in enumerate(chunks):
            if isinstance(chunk, Chunk):
                items.append((chunk.sequence, chunk.text, chunk.source or description))
            else:
                items.append((position, chunk, description))

        for sequence, text, _ in items:
            if not text or not text.strip():
                raise InvalidArgumentError(f"Chunk {sequence} has empty text")

        if not items:
            logger.warning(f"No chunks provided for collection {collection}")
            return []

        prefix = id_prefix or collection
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def save_batch(batch: List[Tuple[int, str, str]]) -> List[str]:
            async with semaphore:
                vectors = await self._embed([text for _, text, _ in batch], cancellation_token)

            return self.vector_store.upsert_batch(
                [
                    VectorRecord(
                        id=f"{prefix}-{sequence}",
                        collection=collection,
                        text=text,
                        vector=tuple(float(x) for x in vector),
                        description=chunk_description,
                    )
                    for (sequence, text, chunk_description), vector in zip(batch, vectors)
                ]
            )

        tasks = [
            asyncio.ensure_future(save_batch(batch))
            for batch in chunk_list(items, self.batch_size)
        ]

        try:
            results = await asyncio.gather(*tasks)
        except BaseException as e:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.error(f"Bulk save to collection {collection} failed: {str(e)}")
            record_error(type(e).__name__, "memory")
            raise

        record_ids = [record_id for batch_ids in results for record_id in batch_ids]
        logger.info(f"Saved {len(record_ids)} chunks to collection {collection}")
        return record_ids

    async def search(
        self,
        collection: str,
        query: str,
        limit: int = 1,
        min_relevance: float = 0.0,
        with_embeddings: bool = False,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> List[SearchResult]:
        """
        Find the records most relevant to a query.

        Args:
            collection: Collection to search
            query: Query text
            limit: Maximum number of results
            min_relevance: Lowest relevance to include
            with_embeddings: Keep vectors on returned records
            cancellation_token: Optional caller abort signal

        Returns:
            Results sorted by descending relevance, ties by ascending id

        Raises:
            CollectionNotFoundError: Only when constructed with
                collection_not_found_fatal=True
        """
        if not query or not query.strip():
            raise InvalidArgumentError("Query cannot be empty")

        try:
            if self.vector_store.count(collection) == 0:
                raise CollectionNotFoundError(collection)

            query_vector = (await self._embed([query], cancellation_token))[0]

            with vector_search_duration_tracker():
                matches = self.vector_store.get_nearest_matches(
                    collection, query_vector, limit=limit, min_relevance=min_relevance
                )

        except CollectionNotFoundError:
            if self.collection_not_found_fatal:
                raise
            logger.info(f"Search on empty collection {collection}, returning no results")
            return []

        except RAGKernelError as e:
            logger.error(f"Error searching collection {collection}: {str(e)}")
            record_error(type(e).__name__, "memory")
            raise

        return [
            SearchResult(record if with_embeddings else record.without_vector(), relevance)
            for record, relevance in matches
        ]

    def get(
        self, collection: str, record_id: str, with_embedding: bool = False
    ) -> Optional[VectorRecord]:
        """Fetch a stored record by id, or None."""
        record = self.vector_store.get(collection, record_id)
        if record is None or with_embedding:
            return record
        return record.without_vector()

    def remove(self, collection: str, record_id: str) -> None:
        """Delete a stored record; unknown ids are ignored."""
        self.vector_store.remove(collection, record_id)

    def get_collections(self) -> List[str]:
        """Names of all known collections."""
        return self.vector_store.get_collections()
