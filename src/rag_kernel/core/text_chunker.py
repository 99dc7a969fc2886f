"""
Text Chunker - Token-bounded line and paragraph splitting

Splits raw text into lines that respect a per-line token budget, then packs
consecutive lines into paragraphs that respect a per-paragraph budget. Token
counts are estimated, not computed with a model tokenizer.

License: MIT
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple
import logging

from ..exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

TokenCounter = Callable[[str], int]

# Separator groups, strongest boundary first. Oversized text is bisected at the
# occurrence nearest its middle, falling back to the next group when a group
# has no occurrence in the text.
PLAINTEXT_SEPARATORS: Tuple[Tuple[str, ...], ...] = (
    ("\n", "\r"),
    (".", "?", "!"),
    (";", ":"),
    (",",),
    (")", "]", "}"),
    (" ", "\t"),
    ("-",),
)

# Markdown wraps paragraphs with soft line breaks, so newlines rank last.
MARKDOWN_SEPARATORS: Tuple[Tuple[str, ...], ...] = (
    (".", "?", "!"),
    (";", ":"),
    (",",),
    (")", "]", "}"),
    (" ", "\t"),
    ("-",),
    ("\n", "\r"),
)


def estimate_token_count(text: str) -> int:
    """
    Approximate the number of model tokens in a text.

    Uses the common four-characters-per-token heuristic. The result is an
    approximation that never decreases as the text grows.

    Args:
        text: Text to measure

    Returns:
        Estimated token count
    """
    return len(text) // 4


@dataclass(frozen=True)
class Chunk:
    """A bounded unit of text ready to be embedded."""

    text: str
    sequence: int
    source: Optional[str] = None


class TextChunker:
    """
    Token-bounded text splitter.

    Lines are produced by recursive bisection at natural boundaries; paragraphs
    are produced by greedily packing lines in their original order.
    """

    def __init__(
        self,
        max_tokens_per_line: int = 100,
        max_tokens_per_paragraph: int = 1000,
        token_counter: Optional[TokenCounter] = None,
    ):
        """
        Initialize the chunker.

        Args:
            max_tokens_per_line: Default budget for a single line
            max_tokens_per_paragraph: Default budget for a paragraph
            token_counter: Token estimator, defaults to estimate_token_count
        """
        self._validate_budget(max_tokens_per_line, "max_tokens_per_line")
        self._validate_budget(max_tokens_per_paragraph, "max_tokens_per_paragraph")

        self.max_tokens_per_line = max_tokens_per_line
        self.max_tokens_per_paragraph = max_tokens_per_paragraph
        self.token_counter = token_counter or estimate_token_count

    @staticmethod
    def _validate_budget(value: int, name: str) -> None:
        if value < 1:
            raise InvalidArgumentError(f"{name} must be at least 1, got {value}")

    def split_lines(self, text: str, max_tokens_per_line: Optional[int] = None) -> List[str]:
        """
        Split plain text into lines within the token budget.

        Args:
            text: Source text
            max_tokens_per_line: Budget per line, defaults to the instance budget

        Returns:
            Ordered list of non-empty, trimmed lines
        """
        return self._split_lines(text, max_tokens_per_line, PLAINTEXT_SEPARATORS)

    def split_markdown_lines(
        self, text: str, max_tokens_per_line: Optional[int] = None
    ) -> List[str]:
        """Split markdown into lines within the token budget."""
        return self._split_lines(text, max_tokens_per_line, MARKDOWN_SEPARATORS)

    def _split_lines(
        self,
        text: str,
        max_tokens: Optional[int],
        separators: Sequence[Tuple[str, ...]],
    ) -> List[str]:
        budget = self.max_tokens_per_line if max_tokens is None else max_tokens
        self._validate_budget(budget, "max_tokens_per_line")

        if not text or not text.strip():
            return []

        text = text.replace("\r\n", "\n")
        return self._bisect(text, budget, separators)

    def _bisect(
        self, text: str, max_tokens: int, separators: Sequence[Tuple[str, ...]]
    ) -> List[str]:
        text = text.strip()
        if not text:
            return []

        if len(text) <= 1 or self.token_counter(text) <= max_tokens:
            return [text]

        for depth, group in enumerate(separators):
            cut = self._find_cut(text, group)
            if cut is not None:
                remaining = separators[depth:]
                return self._bisect(text[:cut], max_tokens, remaining) + self._bisect(
                    text[cut:], max_tokens, remaining
                )

        # No natural boundary left: hard break at the middle
        half = len(text) // 2
        return self._bisect(text[:half], max_tokens, ()) + self._bisect(
            text[half:], max_tokens, ()
        )

    @staticmethod
    def _find_cut(text: str, group: Tuple[str, ...]) -> Optional[int]:
        """Return the cut position after the separator closest to the middle."""
        half = len(text) // 2
        best = None

        for index, char in enumerate(text):
            if char not in group:
                continue
            cut = index + 1
            if cut >= len(text):
                continue
            if best is None or abs(half - cut) < abs(half - best):
                best = cut

        return best

    def split_paragraphs(
        self, lines: Sequence[str], max_tokens_per_paragraph: Optional[int] = None
    ) -> List[str]:
        """
        Greedily pack consecutive lines into paragraphs.

        A line joins the current paragraph only if the paragraph, including its
        trailing newline, stays within the budget. A line that alone exceeds the
        budget is kept unmodified as its own paragraph.

        Args:
            lines: Ordered lines, typically from split_lines
            max_tokens_per_paragraph: Budget per paragraph

        Returns:
            Ordered list of paragraphs with lines joined by newlines
        """
        budget = (
            self.max_tokens_per_paragraph
            if max_tokens_per_paragraph is None
            else max_tokens_per_paragraph
        )
        self._validate_budget(budget, "max_tokens_per_paragraph")

        paragraphs: List[str] = []
        current: List[str] = []

        for line in lines:
            line = line.strip()
            if not line:
                continue

            if current:
                candidate = "\n".join(current + [line])
                if self.token_counter(candidate + "\n") > budget:
                    paragraphs.append("\n".join(current))
                    current = []

            current.append(line)

        if current:
            paragraphs.append("\n".join(current))

        return paragraphs

    def chunk(self, text: str, source: Optional[str] = None, markdown: bool = False) -> List[Chunk]:
        """
        Split text into sequenced paragraph chunks.

        Args:
            text: Source text
            source: Optional origin recorded on every chunk
            markdown: Use markdown boundary ordering

        Returns:
            Chunks numbered from zero in source order
        """
        if markdown:
            lines = self.split_markdown_lines(text)
        else:
            lines = self.split_lines(text)

        paragraphs = self.split_paragraphs(lines)
        chunks = [
            Chunk(text=paragraph, sequence=i, source=source)
            for i, paragraph in enumerate(paragraphs)
        ]

        logger.debug(f"Split {len(text)} characters into {len(lines)} lines, {len(chunks)} chunks")
        return chunks


_default_chunker = TextChunker()


def split_lines(text: str, max_tokens_per_line: int) -> List[str]:
    """Split plain text into lines using the default estimator."""
    return _default_chunker.split_lines(text, max_tokens_per_line)


def split_paragraphs(lines: Sequence[str], max_tokens_per_paragraph: int) -> List[str]:
    """Pack lines into paragraphs using the default estimator."""
    return _default_chunker.split_paragraphs(lines, max_tokens_per_paragraph)
