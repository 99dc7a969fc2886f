"""
Unit Tests for Memory Store

Tests saving, bulk saving, semantic search, deadlines and cancellation.
"""

import asyncio
from typing import List
from unittest.mock import patch

import pytest

from conftest import StubEmbeddingGenerator
from rag_kernel.core import Chunk, EmbeddingGeneratorBase, InMemoryVectorStore, MemoryStore
from rag_kernel.exceptions import (
    CollectionNotFoundError,
    EmbeddingProviderError,
    InvalidArgumentError,
    OperationCancelledError,
    ProviderTimeoutError,
)
from rag_kernel.utils import CancellationToken


PINNED = {
    "cats purr": [1.0, 0.0, 0.0],
    "dogs bark": [0.0, 1.0, 0.0],
    "kittens meow": [0.9, 0.1, 0.0],
    "about cats": [1.0, 0.05, 0.0],
}


class ConcurrencyTrackingGenerator(EmbeddingGeneratorBase):
    def __init__(self):
        self.active = 0
        self.max_active = 0

    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        return [[1.0, float(len(text))] for text in texts]


@pytest.fixture
def pinned_memory():
    generator = StubEmbeddingGenerator(vectors=PINNED)
    return MemoryStore(generator, InMemoryVectorStore()), generator


class TestSave:
    @pytest.mark.asyncio
    async def test_save_and_get(self, memory):
        record_id = await memory.save("notes", "cats purr", id="n1", description="pets")

        assert record_id == "n1"
        record = memory.get("notes", "n1")
        assert record.text == "cats purr"
        assert record.description == "pets"
        assert record.vector == ()
        assert len(memory.get("notes", "n1", with_embedding=True).vector) == 16

    @pytest.mark.asyncio
    async def test_id_precedence(self, memory):
        assert await memory.save("notes", "one", id="explicit", external_source_id="src") == "explicit"
        assert await memory.save("notes", "two", external_source_id="src-2") == "src-2"

        generated = await memory.save("notes", "three")
        assert generated.startswith("notes_")

    @pytest.mark.asyncio
    async def test_save_with_precomputed_embedding(self, memory, embedding_generator):
        await memory.save("notes", "text", id="x", embedding=[0.5] * 16)

        assert embedding_generator.calls == []
        assert memory.get("notes", "x", with_embedding=True).vector == tuple([0.5] * 16)

    @pytest.mark.asyncio
    async def test_save_same_id_replaces(self, memory):
        await memory.save("notes", "first", id="k")
        await memory.save("notes", "second", id="k")

        assert memory.get("notes", "k").text == "second"
        assert memory.vector_store.count("notes") == 1

    @pytest.mark.asyncio
    async def test_save_rejects_empty_input(self, memory):
        with pytest.raises(InvalidArgumentError):
            await memory.save("notes", "   ")
        with pytest.raises(InvalidArgumentError):
            await memory.save("", "text")

    @pytest.mark.asyncio
    async def test_provider_failure_is_wrapped(self, vector_store):
        memory = MemoryStore(StubEmbeddingGenerator(fail_on="boom"), vector_store)

        with pytest.raises(EmbeddingProviderError) as exc_info:
            await memory.save("notes", "boom goes the provider")

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert vector_store.count("notes") == 0

    @pytest.mark.asyncio
    async def test_remove_and_collections(self, memory):
        await memory.save("a", "text", id="1")
        await memory.save("b", "text", id="1")

        memory.remove("a", "1")

        assert memory.get("a", "1") is None
        assert sorted(memory.get_collections()) == ["a", "b"]


class TestSaveMany:
    @pytest.mark.asyncio
    async def test_ids_follow_chunk_sequence(self, embedding_generator, vector_store):
        memory = MemoryStore(embedding_generator, vector_store, batch_size=2)
        chunks = [Chunk(f"chunk number {i}", i, "doc.txt") for i in range(5)]

        record_ids = await memory.save_many("docs", chunks, id_prefix="doc")

        assert record_ids == [f"doc-{i}" for i in range(5)]
        assert len(embedding_generator.calls) == 3
        assert vector_store.count("docs") == 5
        assert memory.get("docs", "doc-3").description == "doc.txt"

    @pytest.mark.asyncio
    async def test_one_index_write_per_batch(self, embedding_generator, vector_store):
        memory = MemoryStore(embedding_generator, vector_store, batch_size=2)

        with patch.object(vector_store, "upsert_batch", wraps=vector_store.upsert_batch) as upsert_batch:
            await memory.save_many("docs", [f"text {i}" for i in range(5)])

        assert upsert_batch.call_count == 3
        assert sorted(len(call.args[0]) for call in upsert_batch.call_args_list) == [1, 2, 2]

    @pytest.mark.asyncio
    async def test_plain_strings_numbered_by_position(self, memory):
        record_ids = await memory.save_many("docs", ["alpha", "beta"])
        assert record_ids == ["docs-0", "docs-1"]

    @pytest.mark.asyncio
    async def test_empty_input(self, memory):
        assert await memory.save_many("docs", []) == []

    @pytest.mark.asyncio
    async def test_empty_chunk_rejected(self, memory):
        with pytest.raises(InvalidArgumentError):
            await memory.save_many("docs", ["fine", "  "])

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, vector_store):
        generator = ConcurrencyTrackingGenerator()
        memory = MemoryStore(generator, vector_store, max_concurrency=2, batch_size=1)

        await memory.save_many("docs", [f"text {i}" for i in range(8)])

        assert 1 <= generator.max_active <= 2
        assert vector_store.count("docs") == 8

    @pytest.mark.asyncio
    async def test_failure_propagates(self, vector_store):
        memory = MemoryStore(StubEmbeddingGenerator(fail_on="bad"), vector_store, batch_size=1)

        with pytest.raises(EmbeddingProviderError):
            await memory.save_many("docs", ["good", "bad", "good again"])

    def test_invalid_construction(self, embedding_generator, vector_store):
        with pytest.raises(InvalidArgumentError):
            MemoryStore(embedding_generator, vector_store, max_concurrency=0)
        with pytest.raises(InvalidArgumentError):
            MemoryStore(embedding_generator, vector_store, batch_size=0)


class TestSearch:
    @pytest.mark.asyncio
    async def test_most_relevant_first(self, pinned_memory):
        memory, _ = pinned_memory
        for text in ["cats purr", "dogs bark", "kittens meow"]:
            await memory.save("pets", text, id=text)

        results = await memory.search("pets", "about cats", limit=2)

        assert [r.id for r in results] == ["cats purr", "kittens meow"]
        assert results[0].relevance >= results[1].relevance
        assert all(0.0 <= r.relevance <= 1.0 for r in results)
        assert all(r.record.vector == () for r in results)

    @pytest.mark.asyncio
    async def test_with_embeddings(self, pinned_memory):
        memory, _ = pinned_memory
        await memory.save("pets", "cats purr", id="c")

        results = await memory.search("pets", "about cats", with_embeddings=True)
        assert results[0].record.vector == (1.0, 0.0, 0.0)

    @pytest.mark.asyncio
    async def test_min_relevance_filters(self, pinned_memory):
        memory, _ = pinned_memory
        await memory.save("pets", "cats purr", id="c")
        await memory.save("pets", "dogs bark", id="d")

        results = await memory.search("pets", "about cats", limit=5, min_relevance=0.5)
        assert [r.id for r in results] == ["c"]

    @pytest.mark.asyncio
    async def test_empty_collection_returns_nothing(self, memory, embedding_generator):
        assert await memory.search("nothing-here", "query") == []
        assert embedding_generator.calls == []

    @pytest.mark.asyncio
    async def test_empty_collection_fatal(self, embedding_generator, vector_store):
        memory = MemoryStore(embedding_generator, vector_store, collection_not_found_fatal=True)

        with pytest.raises(CollectionNotFoundError) as exc_info:
            await memory.search("nothing-here", "query")
        assert exc_info.value.collection == "nothing-here"

    @pytest.mark.asyncio
    async def test_empty_query_rejected(self, memory):
        with pytest.raises(InvalidArgumentError):
            await memory.search("docs", " ")

    @pytest.mark.asyncio
    async def test_search_result_to_dict(self, pinned_memory):
        memory, _ = pinned_memory
        await memory.save("pets", "cats purr", id="c", description="pets.txt")

        result = (await memory.search("pets", "about cats"))[0]

        assert result.to_dict()["id"] == "c"
        assert result.to_dict()["description"] == "pets.txt"
        assert "relevance" in repr(result)

    @pytest.mark.asyncio
    async def test_closest_chunk_wins_with_limit_one(self):
        generator = StubEmbeddingGenerator(
            vectors={"alpha": [1.0, 0.0], "beta": [0.0, 1.0], "alph": [0.9, 0.1]}
        )
        memory = MemoryStore(generator, InMemoryVectorStore())

        assert await memory.save_many("c", ["alpha", "beta"]) == ["c-0", "c-1"]

        results = await memory.search("c", "alph", limit=1)

        assert [r.id for r in results] == ["c-0"]
        assert results[0].record.text == "alpha"

    @pytest.mark.asyncio
    async def test_repeated_search_is_stable(self, pinned_memory):
        memory, _ = pinned_memory
        for text in ["cats purr", "dogs bark", "kittens meow"]:
            await memory.save("pets", text, id=text)

        runs = [await memory.search("pets", "about cats", limit=3) for _ in range(3)]

        first = runs[0]
        for results in runs[1:]:
            assert [r.id for r in results] == [r.id for r in first]
            assert [r.relevance for r in results] == pytest.approx(
                [r.relevance for r in first], abs=1e-6
            )

    @pytest.mark.asyncio
    async def test_resave_same_source_keeps_one_version(self, memory):
        await memory.save("notes", "old text about cats", external_source_id="src")
        await memory.save("notes", "new text about cats", external_source_id="src")

        results = await memory.search("notes", "text about cats", limit=5)

        assert [r.id for r in results] == ["src"]
        assert results[0].record.text == "new text about cats"


class TestDeadlinesAndCancellation:
    @pytest.mark.asyncio
    async def test_timeout(self, vector_store):
        memory = MemoryStore(StubEmbeddingGenerator(delay=1.0), vector_store, timeout=0.01)

        with pytest.raises(ProviderTimeoutError):
            await memory.save("notes", "slow text")
        assert vector_store.count("notes") == 0

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, memory):
        token = CancellationToken()
        token.cancel("user left")

        with pytest.raises(OperationCancelledError, match="user left"):
            await memory.save("notes", "text", cancellation_token=token)

    @pytest.mark.asyncio
    async def test_cancelled_in_flight(self, vector_store):
        memory = MemoryStore(StubEmbeddingGenerator(delay=1.0), vector_store)
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)

        with pytest.raises(OperationCancelledError):
            await memory.save_many("notes", ["one", "two"], cancellation_token=token)
        assert vector_store.count("notes") == 0
