"""
Document Processor - Multi-format document loading and chunking

Reads text out of plain text, markdown, PDF and DOCX files and hands it to
the TextChunker so the result can be saved into a MemoryStore.

License: MIT
"""

from typing import List, Optional
from pathlib import Path
import logging

from ..exceptions import InvalidArgumentError
from .text_chunker import Chunk, TextChunker, TokenCounter

logger = logging.getLogger(__name__)


class DocumentProcessor:
    """
    Multi-format document processor.

    Handles PDF, DOCX, markdown and plain text, converting them into
    token-bounded chunks suitable for embedding and retrieval.
    """

    def __init__(
        self,
        max_tokens_per_line: int = 100,
        max_tokens_per_paragraph: int = 1000,
        token_counter: Optional[TokenCounter] = None,
    ):
        """
        Initialize the document processor.

        Args:
            max_tokens_per_line: Maximum estimated tokens per line
            max_tokens_per_paragraph: Maximum estimated tokens per chunk
            token_counter: Optional token estimator passed to the chunker
        """
        self.chunker = TextChunker(
            max_tokens_per_line=max_tokens_per_line,
            max_tokens_per_paragraph=max_tokens_per_paragraph,
            token_counter=token_counter,
        )

    @property
    def max_tokens_per_line(self) -> int:
        return self.chunker.max_tokens_per_line

    @property
    def max_tokens_per_paragraph(self) -> int:
        return self.chunker.max_tokens_per_paragraph

    def process_file(self, file_path: Path) -> List[Chunk]:
        """
        Process a document file and return text chunks.

        Args:
            file_path: Path to the document file

        Returns:
            Chunks in document order

        Raises:
            InvalidArgumentError: If file format is not supported
            FileNotFoundError: If file doesn't exist
        """
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        file_ext = file_path.suffix.lower()

        try:
            if file_ext == ".pdf":
                text = self.parse_pdf(file_path)
            elif file_ext == ".docx":
                text = self.parse_docx(file_path)
            elif file_ext in [".txt", ".md"]:
                text = file_path.read_text(encoding="utf-8")
            else:
                raise InvalidArgumentError(f"Unsupported file format: {file_ext}")

            logger.info(f"Successfully processed {file_path}, extracted {len(text)} characters")
            return self.create_chunks(text, str(file_path), markdown=file_ext == ".md")

        except Exception as e:
            logger.error(f"Error processing file {file_path}: {str(e)}")
            raise

    def parse_pdf(self, file_path: Path) -> str:
        """
        Extract text from PDF file.

        Args:
            file_path: Path to PDF file

        Returns:
            Extracted text content
        """
        import PyPDF2

        try:
            with open(file_path, "rb") as file:
                pdf_reader = PyPDF2.PdfReader(file)
                pages = []

                for page_num, page in enumerate(pdf_reader.pages):
                    try:
                        pages.append(page.extract_text() or "")
                    except Exception as e:
                        logger.warning(
                            f"Error extracting page {page_num} from {file_path}: {str(e)}"
                        )
                        continue

                return "\n".join(pages).strip()

        except Exception as e:
            logger.error(f"Error parsing PDF {file_path}: {str(e)}")
            raise

    def parse_docx(self, file_path: Path) -> str:
        """
        Extract text from DOCX file.

        Args:
            file_path: Path to DOCX file

        Returns:
            Extracted text content
        """
        import docx

        try:
            doc = docx.Document(file_path)
            return "\n".join(
                paragraph.text for paragraph in doc.paragraphs if paragraph.text.strip()
            )

        except Exception as e:
            logger.error(f"Error parsing DOCX {file_path}: {str(e)}")
            raise

    def create_chunks(self, text: str, source_path: str, markdown: bool = False) -> List[Chunk]:
        """
        Split text into token-bounded chunks.

        Args:
            text: Source text to chunk
            source_path: Origin recorded on each chunk
            markdown: Treat the text as markdown

        Returns:
            Chunks numbered in source order
        """
        if not text.strip():
            logger.warning(f"Empty text provided for chunking from {source_path}")
            return []

        chunks = self.chunker.chunk(text, source=source_path, markdown=markdown)

        logger.info(f"Created {len(chunks)} chunks from {source_path}")
        return chunks
