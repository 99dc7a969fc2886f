"""
Unit Tests for Document Processor

Tests the document processing functionality including:
- File format support
- Text chunking
- Error cases
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock, Mock, patch

import pytest

from rag_kernel.core import DocumentProcessor, estimate_token_count
from rag_kernel.exceptions import InvalidArgumentError


class TestDocumentProcessor:
    """Test cases for DocumentProcessor class."""

    def test_init_default_params(self):
        """Test initialization with default parameters."""
        processor = DocumentProcessor()
        assert processor.max_tokens_per_line == 100
        assert processor.max_tokens_per_paragraph == 1000

    def test_init_custom_params(self):
        """Test initialization with custom parameters."""
        processor = DocumentProcessor(max_tokens_per_line=10, max_tokens_per_paragraph=50)
        assert processor.max_tokens_per_line == 10
        assert processor.max_tokens_per_paragraph == 50

    def test_init_invalid_params(self):
        with pytest.raises(InvalidArgumentError):
            DocumentProcessor(max_tokens_per_line=0)

    def test_create_chunks_basic(self, document_processor):
        """Test basic text chunking functionality."""
        text = "This is a test document. " * 50
        chunks = document_processor.create_chunks(text, "test.txt")

        assert len(chunks) > 1
        assert [chunk.sequence for chunk in chunks] == list(range(len(chunks)))
        assert all(chunk.source == "test.txt" for chunk in chunks)
        assert all(
            estimate_token_count(line) <= 20
            for chunk in chunks
            for line in chunk.text.split("\n")
        )

    def test_create_chunks_empty_text(self, document_processor):
        """Test chunking with empty text."""
        assert document_processor.create_chunks("", "empty.txt") == []

    def test_create_chunks_whitespace_only(self, document_processor):
        """Test chunking with whitespace-only text."""
        assert document_processor.create_chunks("   \n\t   ", "whitespace.txt") == []

    def test_create_chunks_single_word(self, document_processor):
        """Test chunking with single word."""
        chunks = document_processor.create_chunks("word", "single.txt")
        assert len(chunks) == 1
        assert chunks[0].text == "word"
        assert chunks[0].sequence == 0

    def test_process_text_file(self, document_processor, tmp_path):
        file_path = tmp_path / "notes.txt"
        file_path.write_text("Sentence one. Sentence two.", encoding="utf-8")

        chunks = document_processor.process_file(file_path)

        assert len(chunks) == 1
        assert chunks[0].text == "Sentence one. Sentence two."
        assert chunks[0].source == str(file_path)

    def test_process_markdown_file_uses_markdown_splitting(self, tmp_path):
        processor = DocumentProcessor(max_tokens_per_line=4, max_tokens_per_paragraph=4)
        file_path = tmp_path / "notes.md"
        file_path.write_text("alpha beta\ngamma delta", encoding="utf-8")

        chunks = processor.process_file(file_path)

        assert [chunk.text for chunk in chunks] == ["alpha", "beta\ngamma delta"]

    def test_process_file_not_found(self, document_processor):
        """Test processing non-existent file."""
        with pytest.raises(FileNotFoundError):
            document_processor.process_file(Path("nonexistent.txt"))

    def test_process_file_unsupported_format(self, document_processor, tmp_path):
        """Test processing unsupported file format."""
        file_path = tmp_path / "data.xyz"
        file_path.write_text("content", encoding="utf-8")

        with pytest.raises(InvalidArgumentError, match="Unsupported file format"):
            document_processor.process_file(file_path)

    def test_parse_pdf(self, document_processor, tmp_path):
        """Test PDF text extraction with a mocked reader."""
        file_path = tmp_path / "doc.pdf"
        file_path.write_bytes(b"%PDF-1.4")

        page_one, page_two = Mock(), Mock()
        page_one.extract_text.return_value = "Page one text."
        page_two.extract_text.return_value = "Page two text."
        pypdf2 = MagicMock()
        pypdf2.PdfReader.return_value.pages = [page_one, page_two]

        with patch.dict(sys.modules, {"PyPDF2": pypdf2}):
            chunks = document_processor.process_file(file_path)

        assert [chunk.text for chunk in chunks] == ["Page one text.\nPage two text."]

    def test_parse_pdf_skips_unreadable_page(self, document_processor, tmp_path):
        file_path = tmp_path / "doc.pdf"
        file_path.write_bytes(b"%PDF-1.4")

        good, bad = Mock(), Mock()
        good.extract_text.return_value = "Readable."
        bad.extract_text.side_effect = ValueError("corrupt page")
        pypdf2 = MagicMock()
        pypdf2.PdfReader.return_value.pages = [bad, good]

        with patch.dict(sys.modules, {"PyPDF2": pypdf2}):
            text = document_processor.parse_pdf(file_path)

        assert text == "Readable."

    def test_parse_docx(self, document_processor, tmp_path):
        """Test DOCX text extraction with a mocked document."""
        file_path = tmp_path / "doc.docx"
        file_path.write_bytes(b"PK")

        paragraphs = [Mock(text="First paragraph."), Mock(text="  "), Mock(text="Second one.")]
        docx = MagicMock()
        docx.Document.return_value.paragraphs = paragraphs

        with patch.dict(sys.modules, {"docx": docx}):
            text = document_processor.parse_docx(file_path)

        assert text == "First paragraph.\nSecond one."
