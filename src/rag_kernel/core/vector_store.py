"""
Vector Store - Collection-scoped storage and similarity search for embeddings

Records are immutable; an upsert swaps the whole record so concurrent readers
see either the previous or the new version, never a partial one. Similarity
search is implemented once, on the base class, as a pure function of the
stored vectors and the query vector.

License: MIT
"""

from typing import List, Dict, Any, Optional, Tuple
from dataclasses import dataclass, field
from abc import ABC, abstractmethod
import logging
import threading
import time

from ..exceptions import CollectionNotFoundError, InvalidArgumentError
from ..utils.helpers import calculate_cosine_similarity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VectorRecord:
    """A stored chunk of text with its embedding."""

    id: str
    collection: str
    text: str
    vector: Tuple[float, ...]
    description: str = ""
    external_source_id: str = ""
    additional_metadata: str = ""
    timestamp: float = field(default_factory=time.time)

    def without_vector(self) -> "VectorRecord":
        """Copy of the record with the embedding stripped."""
        return VectorRecord(
            id=self.id,
            collection=self.collection,
            text=self.text,
            vector=(),
            description=self.description,
            external_source_id=self.external_source_id,
            additional_metadata=self.additional_metadata,
            timestamp=self.timestamp,
        )


def relevance_score(query_vector: List[float], vector: Tuple[float, ...]) -> float:
    """
    Cosine similarity clamped to the [0, 1] relevance range.

    Opposed vectors and zero vectors score 0.0.
    """
    similarity = calculate_cosine_similarity(query_vector, vector)
    return min(1.0, max(0.0, similarity))


class VectorStoreBase(ABC):
    """Abstract base class for vector stores."""

    @abstractmethod
    def upsert(self, record: VectorRecord) -> str:
        """
        Insert or replace a record keyed by (collection, id).

        Any other record in the same collection that carries the same
        non-empty external_source_id is removed in the same step.
        """
        pass

    @abstractmethod
    def get(self, collection: str, record_id: str) -> Optional[VectorRecord]:
        """Fetch a record by id, or None."""
        pass

    @abstractmethod
    def remove(self, collection: str, record_id: str) -> None:
        """Delete a record by id; unknown ids are ignored."""
        pass

    @abstractmethod
    def get_all(self, collection: str) -> List[VectorRecord]:
        """Snapshot of every record in a collection."""
        pass

    @abstractmethod
    def get_collections(self) -> List[str]:
        """Names of all known collections."""
        pass

    @abstractmethod
    def delete_collection(self, collection: str) -> None:
        """Drop a collection and all its records."""
        pass

    def upsert_batch(self, records: List[VectorRecord]) -> List[str]:
        """Upsert several records, returning their ids in order."""
        return [self.upsert(record) for record in records]

    def count(self, collection: str) -> int:
        """Number of records in a collection."""
        return len(self.get_all(collection))

    def ping(self) -> bool:
        """Check if the vector store is healthy."""
        return True

    def get_nearest_matches(
        self,
        collection: str,
        query_vector: List[float],
        limit: int,
        min_relevance: float = 0.0,
    ) -> List[Tuple[VectorRecord, float]]:
        """
        Rank the records of a collection by cosine relevance to a query vector.

        Args:
            collection: Collection to search
            query_vector: Embedding of the query
            limit: Maximum number of matches
            min_relevance: Lowest relevance to include

        Returns:
            (record, relevance) pairs sorted by descending relevance, ties by
            ascending id

        Raises:
            CollectionNotFoundError: If the collection holds no records
            InvalidArgumentError: If limit < 1 or the query dimension differs
        """
        if limit < 1:
            raise InvalidArgumentError(f"limit must be at least 1, got {limit}")

        if not query_vector:
            raise InvalidArgumentError("Query embedding cannot be empty")

        records = self.get_all(collection)
        if not records:
            raise CollectionNotFoundError(collection)

        matches = []
        for record in records:
            if len(record.vector) != len(query_vector):
                raise InvalidArgumentError(
                    f"Query dimension {len(query_vector)} does not match record "
                    f"'{record.id}' dimension {len(record.vector)}"
                )

            relevance = relevance_score(query_vector, record.vector)
            if relevance >= min_relevance:
                matches.append((record, relevance))

        matches.sort(key=lambda match: (-match[1], match[0].id))
        return matches[:limit]

    @staticmethod
    def _validate_record(record: VectorRecord) -> None:
        if not record.id:
            raise InvalidArgumentError("Record id cannot be empty")
        if not record.collection:
            raise InvalidArgumentError("Collection name cannot be empty")
        if not record.vector:
            raise InvalidArgumentError(f"Record '{record.id}' has an empty embedding")


class InMemoryVectorStore(VectorStoreBase):
    """
    Process-local vector store.

    The embedding dimension is pinned by the first record stored and enforced
    for every later record.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, VectorRecord]] = {}
        self._dimension: Optional[int] = None
        self._lock = threading.RLock()
        self.backend = "memory"

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def upsert(self, record: VectorRecord) -> str:
        self._validate_record(record)

        with self._lock:
            if self._dimension is None:
                self._dimension = len(record.vector)
            elif len(record.vector) != self._dimension:
                raise InvalidArgumentError(
                    f"Embedding dimension {len(record.vector)} does not match "
                    f"store dimension {self._dimension}"
                )

            records = self._collections.setdefault(record.collection, {})

            if record.external_source_id:
                superseded = [
                    existing.id
                    for existing in records.values()
                    if existing.external_source_id == record.external_source_id
                    and existing.id != record.id
                ]
                for record_id in superseded:
                    del records[record_id]
                    logger.debug(
                        f"Replaced record {record_id} for source {record.external_source_id}"
                    )

            records[record.id] = record

        return record.id

    def get(self, collection: str, record_id: str) -> Optional[VectorRecord]:
        with self._lock:
            return self._collections.get(collection, {}).get(record_id)

    def remove(self, collection: str, record_id: str) -> None:
        with self._lock:
            self._collections.get(collection, {}).pop(record_id, None)

    def get_all(self, collection: str) -> List[VectorRecord]:
        with self._lock:
            return list(self._collections.get(collection, {}).values())

    def get_collections(self) -> List[str]:
        with self._lock:
            return list(self._collections.keys())

    def delete_collection(self, collection: str) -> None:
        with self._lock:
            self._collections.pop(collection, None)

        logger.info(f"Deleted collection {collection}")


class ChromaVectorStore(VectorStoreBase):
    """
    Durable vector store backed by ChromaDB.

    Each logical collection maps to one chroma collection. Ranking still goes
    through VectorStoreBase.get_nearest_matches so ordering and tie-breaking
    match the in-memory store exactly.
    """

    def __init__(self, persist_directory: Optional[str] = None, client: Any = None):
        """
        Initialize the vector store.

        Args:
            persist_directory: Directory for a persistent client; in-process
                storage is used when omitted
            client: Pre-built chroma client, mainly for tests
        """
        self.persist_directory = persist_directory
        self._client: Any = client
        self.backend = "chroma"

    @property
    def client(self) -> Any:
        """Lazy initialization of the chroma client."""
        if self._client is None:
            import chromadb

            if self.persist_directory:
                self._client = chromadb.PersistentClient(path=self.persist_directory)
            else:
                self._client = chromadb.EphemeralClient()
            logger.info(f"Created chroma client (persist_directory={self.persist_directory})")

        return self._client

    def _get_collection(self, collection: str) -> Any:
        return self.client.get_or_create_collection(
            name=collection, metadata={"hnsw:space": "cosine"}
        )

    def upsert(self, record: VectorRecord) -> str:
        self._validate_record(record)
        chroma_collection = self._get_collection(record.collection)

        try:
            if record.external_source_id:
                existing = chroma_collection.get(
                    where={"external_source_id": record.external_source_id}
                )
                superseded = [i for i in existing["ids"] if i != record.id]
                if superseded:
                    chroma_collection.delete(ids=superseded)

            chroma_collection.upsert(
                ids=[record.id],
                embeddings=[list(record.vector)],
                documents=[record.text],
                metadatas=[
                    {
                        "description": record.description,
                        "external_source_id": record.external_source_id,
                        "additional_metadata": record.additional_metadata,
                        "timestamp": record.timestamp,
                    }
                ],
            )

        except Exception as e:
            logger.error(f"Error storing record {record.id} in chroma: {str(e)}")
            raise

        return record.id

    def get(self, collection: str, record_id: str) -> Optional[VectorRecord]:
        if collection not in self.get_collections():
            return None

        response = self._get_collection(collection).get(
            ids=[record_id], include=["embeddings", "documents", "metadatas"]
        )
        records = self._to_records(collection, response)
        return records[0] if records else None

    def remove(self, collection: str, record_id: str) -> None:
        if collection in self.get_collections():
            self._get_collection(collection).delete(ids=[record_id])

    def get_all(self, collection: str) -> List[VectorRecord]:
        if collection not in self.get_collections():
            return []

        response = self._get_collection(collection).get(
            include=["embeddings", "documents", "metadatas"]
        )
        return self._to_records(collection, response)

    def get_collections(self) -> List[str]:
        # chromadb returns names in recent releases and Collection objects in older ones
        return [getattr(c, "name", c) for c in self.client.list_collections()]

    def delete_collection(self, collection: str) -> None:
        if collection in self.get_collections():
            self.client.delete_collection(name=collection)
            logger.info(f"Deleted chroma collection {collection}")

    def count(self, collection: str) -> int:
        if collection not in self.get_collections():
            return 0
        return self._get_collection(collection).count()

    def ping(self) -> bool:
        try:
            self.client.heartbeat()
            return True
        except Exception as e:
            logger.error(f"Vector store health check failed: {str(e)}")
            return False

    @staticmethod
    def _to_records(collection: str, response: Dict[str, Any]) -> List[VectorRecord]:
        ids = response.get("ids") or []
        embeddings = response.get("embeddings")
        documents = response.get("documents")
        metadatas = response.get("metadatas")

        records = []
        for i, record_id in enumerate(ids):
            metadata = (metadatas[i] if metadatas is not None else None) or {}
            vector = embeddings[i] if embeddings is not None else []
            records.append(
                VectorRecord(
                    id=record_id,
                    collection=collection,
                    text=documents[i] if documents is not None else "",
                    vector=tuple(float(x) for x in vector),
                    description=metadata.get("description", ""),
                    external_source_id=metadata.get("external_source_id", ""),
                    additional_metadata=metadata.get("additional_metadata", ""),
                    timestamp=float(metadata.get("timestamp", 0.0)),
                )
            )

        return records
