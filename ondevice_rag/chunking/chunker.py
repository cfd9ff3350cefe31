"""
Document Chunking Module

Provides fixed-length token chunking with overlap support.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..errors import InvalidConfigError
from .tokenizer import Tokenizer, WhitespaceTokenizer


@dataclass(frozen=True)
class TextChunk:
    text: str
    chunk_index: int
    start_token: int
    end_token: int
    token_count: int


class DocumentChunker:
    """
    Chunks documents into fixed-size token windows with overlap.

    Consecutive windows advance by ``chunk_size - chunk_overlap`` tokens; the
    window that reaches the end of the text is the last one. Window edges are
    moved back to the nearest character boundary, so a chunk never splits a
    multi-byte character.
    """

    def __init__(
        self,
        chunk_size: int = 512,
        chunk_overlap: int = 50,
        tokenizer: Optional[Tokenizer] = None
    ):
        """
        Initialize the chunker.

        Args:
            chunk_size: Maximum tokens per chunk
            chunk_overlap: Tokens shared by consecutive chunks
            tokenizer: Token counter (whitespace words by default)

        Raises:
            InvalidConfigError: If the size/overlap combination is unusable
        """
        if chunk_size <= 0:
            raise InvalidConfigError(f"chunk_size must be positive, got {chunk_size}")
        if chunk_overlap < 0:
            raise InvalidConfigError(f"chunk_overlap must be >= 0, got {chunk_overlap}")
        if chunk_overlap >= chunk_size:
            raise InvalidConfigError(
                f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
            )

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.tokenizer = tokenizer or WhitespaceTokenizer()

    @property
    def step(self) -> int:
        return self.chunk_size - self.chunk_overlap

    def chunk_text(self, text: str) -> List[TextChunk]:
        """
        Chunk a single text into overlapping pieces.

        Args:
            text: Text to chunk

        Returns:
            Chunks in source order; empty for blank text
        """
        if not text or not text.strip():
            return []

        tokens = self.tokenizer.encode(text)
        boundaries = self.tokenizer.char_boundaries(tokens)
        total = len(tokens)
        chunks = []

        start = 0
        chunk_idx = 0

        while start < total:
            end = _snap_end(boundaries, start, min(start + self.chunk_size, total))
            chunk_tokens = tokens[start:end]

            chunks.append(TextChunk(
                text=self.tokenizer.decode(chunk_tokens),
                chunk_index=chunk_idx,
                start_token=start,
                end_token=end,
                token_count=len(chunk_tokens)
            ))

            if end == total:
                break

            next_start = _snap_back(boundaries, start, min(start + self.step, total))
            start = min(next_start, end) if next_start > start else end
            chunk_idx += 1

        return chunks

    def split(self, text: str) -> List[str]:
        """Return only the chunk texts."""
        return [chunk.text for chunk in self.chunk_text(text)]

    def get_stats(self, chunks: List[TextChunk]) -> Dict[str, Any]:
        """
        Get statistics about chunked documents.

        Args:
            chunks: List of chunks

        Returns:
            Statistics dictionary
        """
        sizes = [c.token_count for c in chunks]
        avg_size = sum(sizes) / len(sizes) if sizes else 0

        return {
            "total_chunks": len(chunks),
            "avg_chunk_size": avg_size,
            "min_chunk_size": min(sizes) if sizes else 0,
            "max_chunk_size": max(sizes) if sizes else 0,
            "tokenizer": self.tokenizer.name
        }


def _snap_back(boundaries: List[bool], start: int, position: int) -> int:
    """Last character boundary in (start, position], or start if none."""
    for i in range(position, start, -1):
        if boundaries[i]:
            return i
    return start


def _snap_end(boundaries: List[bool], start: int, end: int) -> int:
    end_at = _snap_back(boundaries, start, end)
    if end_at > start:
        return end_at
    # A single character spans more tokens than the window
    for i in range(end + 1, len(boundaries)):
        if boundaries[i]:
            return i
    return len(boundaries) - 1
