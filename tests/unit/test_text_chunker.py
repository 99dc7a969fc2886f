"""
Unit Tests for Text Chunker

Tests line splitting, paragraph packing and chunk sequencing.
"""

import re

import pytest

from rag_kernel.core import Chunk, TextChunker, estimate_token_count, split_lines, split_paragraphs
from rag_kernel.exceptions import InvalidArgumentError


def _squash(text: str) -> str:
    return re.sub(r"\s+", "", text)


def word_counter(text: str) -> int:
    return len(text.split())


class TestTokenEstimate:
    def test_four_characters_per_token(self):
        assert estimate_token_count("") == 0
        assert estimate_token_count("abc") == 0
        assert estimate_token_count("abcd") == 1
        assert estimate_token_count("a" * 41) == 10

    def test_monotonic_in_length(self):
        counts = [estimate_token_count("x" * n) for n in range(50)]
        assert counts == sorted(counts)


class TestSplitLines:
    """Test cases for line splitting."""

    def test_sentences_split_at_periods(self, chunker):
        lines = chunker.split_lines("Sentence one. Sentence two. Sentence three.", 5)
        assert lines == ["Sentence one.", "Sentence two.", "Sentence three."]

    def test_short_text_is_single_line(self, chunker):
        assert chunker.split_lines("  Short text.  ", 100) == ["Short text."]

    def test_empty_and_whitespace_text(self, chunker):
        assert chunker.split_lines("", 5) == []
        assert chunker.split_lines("   \n\t  ", 5) == []

    def test_invalid_budget(self, chunker):
        with pytest.raises(InvalidArgumentError):
            chunker.split_lines("Some text", 0)

    def test_newlines_preferred(self, chunker):
        lines = chunker.split_lines("First line here\nSecond line here", 5)
        assert lines == ["First line here", "Second line here"]

    def test_lines_respect_budget(self, chunker):
        text = "The quick brown fox jumps over the lazy dog, again and again. " * 20
        lines = chunker.split_lines(text, 5)

        assert len(lines) > 1
        assert all(estimate_token_count(line) <= 5 for line in lines)
        assert all(line == line.strip() and line for line in lines)

    def test_content_and_order_preserved(self, chunker):
        text = "Alpha beta; gamma delta. Epsilon (zeta) eta, theta!\nIota kappa lambda."
        lines = chunker.split_lines(text, 3)
        assert _squash("".join(lines)) == _squash(text)

    def test_hard_break_without_separators(self, chunker):
        lines = chunker.split_lines("a" * 40, 2)
        assert lines == ["a" * 10] * 4

    def test_markdown_ranks_newlines_last(self, chunker):
        text = "alpha beta\ngamma delta"

        assert chunker.split_lines(text, 4) == ["alpha beta", "gamma delta"]
        assert chunker.split_markdown_lines(text, 4) == ["alpha", "beta\ngamma delta"]

    def test_custom_token_counter(self):
        chunker = TextChunker(token_counter=word_counter)
        lines = chunker.split_lines("one two three four five six", 3)

        assert all(word_counter(line) <= 3 for line in lines)
        assert " ".join(lines) == "one two three four five six"

    def test_module_level_function(self):
        assert split_lines("Sentence one. Sentence two. Sentence three.", 5) == [
            "Sentence one.",
            "Sentence two.",
            "Sentence three.",
        ]


class TestSplitParagraphs:
    """Test cases for paragraph packing."""

    def test_lines_packed_within_budget(self, chunker):
        lines = ["Sentence one.", "Sentence two.", "Sentence three."]
        assert chunker.split_paragraphs(lines, 10) == [
            "Sentence one.\nSentence two.",
            "Sentence three.",
        ]

    def test_oversized_line_kept_alone(self, chunker):
        long_line = "x" * 100
        paragraphs = chunker.split_paragraphs(["short", long_line, "tail"], 5)
        assert paragraphs == ["short", long_line, "tail"]

    def test_blank_lines_skipped(self, chunker):
        assert chunker.split_paragraphs(["", "  ", "Only line"], 10) == ["Only line"]

    def test_empty_input(self, chunker):
        assert chunker.split_paragraphs([], 10) == []

    def test_invalid_budget(self, chunker):
        with pytest.raises(InvalidArgumentError):
            chunker.split_paragraphs(["line"], 0)

    def test_everything_fits_in_one_paragraph(self, chunker):
        lines = ["one", "two", "three"]
        assert chunker.split_paragraphs(lines, 1000) == ["one\ntwo\nthree"]

    def test_module_level_function(self):
        assert split_paragraphs(["Sentence one.", "Sentence two.", "Sentence three."], 10) == [
            "Sentence one.\nSentence two.",
            "Sentence three.",
        ]


class TestChunk:
    def test_chunks_are_sequenced(self):
        chunker = TextChunker(max_tokens_per_line=5, max_tokens_per_paragraph=10)
        chunks = chunker.chunk("Sentence one. Sentence two. Sentence three.", source="doc.txt")

        assert chunks == [
            Chunk("Sentence one.\nSentence two.", 0, "doc.txt"),
            Chunk("Sentence three.", 1, "doc.txt"),
        ]

    def test_one_token_per_word(self):
        chunker = TextChunker(max_tokens_per_line=5, max_tokens_per_paragraph=10, token_counter=word_counter)
        text = "Sentence one. Sentence two. Sentence three."

        assert chunker.split_lines(text) == ["Sentence one. Sentence two.", "Sentence three."]
        assert chunker.chunk(text) == [Chunk("Sentence one. Sentence two.\nSentence three.", 0, None)]

    def test_empty_text(self, chunker):
        assert chunker.chunk("") == []

    def test_constructor_rejects_invalid_budgets(self):
        with pytest.raises(InvalidArgumentError):
            TextChunker(max_tokens_per_line=0)
        with pytest.raises(InvalidArgumentError):
            TextChunker(max_tokens_per_paragraph=-1)
