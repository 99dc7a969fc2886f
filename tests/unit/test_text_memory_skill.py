"""
Unit Tests for the Text Memory Skill
"""

import pytest

from conftest import StubEmbeddingGenerator, StubTextGenerator
from rag_kernel.core import InMemoryVectorStore, MemoryStore
from rag_kernel.exceptions import InvalidArgumentError
from rag_kernel.orchestration import Kernel
from rag_kernel.skills import TextMemorySkill

VECTORS = {
    "The office opens at 9am.": [1.0, 0.0],
    "Parking is behind the building.": [0.0, 1.0],
    "When does the office open?": [0.95, 0.05],
}


@pytest.fixture
def memory_kernel():
    memory = MemoryStore(StubEmbeddingGenerator(vectors=VECTORS), InMemoryVectorStore())
    generator = StubTextGenerator()
    kernel = Kernel(text_generator=generator, memory=memory)
    kernel.import_skill(TextMemorySkill(memory, default_collection="facts", default_relevance=0.5), "memory")
    return kernel, memory, generator


class TestTextMemorySkill:
    @pytest.mark.asyncio
    async def test_save_then_recall(self, memory_kernel):
        kernel, memory, _ = memory_kernel

        saved = await kernel.run(
            "memory.save",
            context=kernel.create_new_context("The office opens at 9am.", {"key": "hours"}),
        )
        await memory.save("facts", "Parking is behind the building.", id="parking")

        recalled = await kernel.run("memory.recall", input_str="When does the office open?")

        assert saved.result == "hours"
        assert recalled.result == "The office opens at 9am."

    @pytest.mark.asyncio
    async def test_recall_joins_multiple_results(self, memory_kernel):
        kernel, memory, _ = memory_kernel
        await memory.save("facts", "The office opens at 9am.", id="a")
        await memory.save("facts", "Parking is behind the building.", id="b")

        context = kernel.create_new_context(
            "When does the office open?", {"limit": "2", "relevance": "0"}
        )
        result = await kernel.run("memory.recall", context=context)

        assert result.result == "The office opens at 9am.\n\nParking is behind the building."

    @pytest.mark.asyncio
    async def test_recall_empty_collection(self, memory_kernel):
        kernel, _, _ = memory_kernel
        result = await kernel.run("memory.recall", input_str="When does the office open?")
        assert result.result == ""

    @pytest.mark.asyncio
    async def test_recall_other_collection(self, memory_kernel):
        kernel, memory, _ = memory_kernel
        await memory.save("other", "Parking is behind the building.", id="p")

        context = kernel.create_new_context("Parking is behind the building.", {"collection": "other"})
        result = await kernel.run("memory.recall", context=context)

        assert result.result == "Parking is behind the building."

    @pytest.mark.asyncio
    async def test_invalid_limit(self, memory_kernel):
        kernel, _, _ = memory_kernel
        context = kernel.create_new_context("When does the office open?", {"limit": "many"})

        with pytest.raises(InvalidArgumentError) as exc_info:
            await kernel.run("memory.recall", context=context)
        assert exc_info.value.function_name == "memory.recall"

    @pytest.mark.asyncio
    async def test_recall_inside_prompt(self, memory_kernel):
        kernel, memory, generator = memory_kernel
        await memory.save("facts", "The office opens at 9am.", id="a")
        kernel.register_semantic_function(
            "qa", "answer", "Facts: {{memory.recall $question}}\nQ: {{question}}"
        )

        context = kernel.create_new_context(variables={"question": "When does the office open?"})
        await kernel.run("qa.answer", context=context)

        assert generator.prompts == [
            "Facts: The office opens at 9am.\nQ: When does the office open?"
        ]
