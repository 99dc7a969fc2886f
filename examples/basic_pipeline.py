#!/usr/bin/env python3
"""
Basic Pipeline Example - Indexing, recall and function chains

This example demonstrates the core kernel functionality:
- Chunking and indexing documents into memory
- Answering questions with the built-in answer prompt
- Chaining memory recall with native functions

Run this example:
    python examples/basic_pipeline.py

Prerequisites:
    - OpenAI API key set as OPENAI_API_KEY environment variable
"""

import asyncio
import os
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rag_kernel import RAGService, get_config, kernel_function
from rag_kernel.infrastructure import setup_logging


SAMPLE_DOCUMENTS = {
    "ml_basics": """
    Machine learning is a subset of artificial intelligence that focuses on the development of algorithms
    and statistical models that enable computer systems to improve their performance on a specific task
    through experience. Unlike traditional programming where explicit instructions are provided, machine
    learning systems learn patterns from data to make predictions or decisions.
    """,
    "nlp_intro": """
    Natural language processing (NLP) is a field of AI that focuses on the interaction between computers
    and human language. It involves developing algorithms and models that can understand, interpret, and
    generate human language in a valuable way.
    """,
    "rag_overview": """
    Retrieval-Augmented Generation (RAG) is an AI framework that combines information retrieval with
    text generation. It works by first retrieving relevant documents from a knowledge base, then using
    that retrieved information to generate more accurate and contextually relevant responses.
    """,
}


class FormattingSkill:
    """Native functions used in the chain below."""

    @kernel_function(description="Collapse whitespace in the input")
    def normalize(self, params, context):
        return " ".join(params["input"].split())

    @kernel_function(description="Prefix the input with a bullet")
    def bullet(self, params, context):
        return f"- {params['input']}"


async def run_example():
    """Run the basic pipeline example."""
    print("🚀 Basic Pipeline Example")
    print("=" * 50)

    config = get_config()
    service = RAGService.from_config(config, native_skills={"formatting": FormattingSkill()})
    print("✅ Service initialized")

    print("\n📚 Indexing sample documents...")
    for document_id, text in SAMPLE_DOCUMENTS.items():
        record_ids = await service.index_document(text.strip(), document_id)
        print(f"  {document_id}: {len(record_ids)} chunks")

    print("\n❓ Running example queries...")
    for i, question in enumerate(
        ["What is machine learning?", "What is RAG and how does it work?"], 1
    ):
        print(f"\n🔍 Query {i}: {question}")
        print("-" * 60)

        result = await service.process_query(question, limit=2)

        print(f"💡 Answer: {result['answer']}")
        print(f"🎯 Confidence: {result['confidence']:.2f}")
        print(f"⏱️  Processing time: {result['metadata']['query_time']:.2f}s")

        print("\n📄 Sources:")
        for j, source in enumerate(result["sources"], 1):
            print(f"  {j}. Score: {source['score']:.3f} | {source['source_file']}")

    print("\n🔗 Running a function chain...")
    summary = await service.kernel.run(
        "memory.recall",
        "formatting.normalize",
        "formatting.bullet",
        input_str="How do computers understand human language?",
    )
    print(f"📝 Recalled: {summary.result}")
    for record in summary.invocations:
        print(f"  {record.function_name}: {record.state.value} in {record.duration:.3f}s")

    print("\n🎉 Basic pipeline example completed!")


def main():
    if not os.getenv("OPENAI_API_KEY"):
        print("❌ Error: OPENAI_API_KEY environment variable not set")
        return

    setup_logging(level="WARNING")
    asyncio.run(run_example())


if __name__ == "__main__":
    main()
