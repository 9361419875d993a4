"""
Word-window chunking of source text.
Splits text into overlapping windows small enough for a single extraction call.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ChunkResult:
    """One window of the source text."""
    text: str
    start_word: int
    end_word: int
    chunk_index: int

    @property
    def word_count(self) -> int:
        """Number of words in the chunk."""
        return self.end_word - self.start_word


@dataclass
class WordChunks:
    """
    Lazy, restartable sequence of chunks over a tokenized text.

    Chunk texts are only joined while iterating, and every call to
    ``iter()`` starts again from the first chunk.
    """
    text: str
    words: List[str]
    chunk_size: int
    overlap: int
    max_chunks: Optional[int] = None
    config_used: dict = field(default_factory=dict)

    @property
    def step(self) -> int:
        """Words advanced between consecutive windows (never below 1)."""
        return max(1, self.chunk_size - self.overlap)

    @property
    def total_words(self) -> int:
        return len(self.words)

    def _window_count(self) -> int:
        if not self.words:
            return 0
        if len(self.words) <= self.chunk_size:
            return 1
        # Number of starts s = k*step with s + chunk_size < len(words), plus the last window
        remaining = len(self.words) - self.chunk_size
        return -(-remaining // self.step) + 1

    def __len__(self) -> int:
        count = self._window_count()
        if self.max_chunks is not None:
            return min(count, self.max_chunks)
        return count

    def __iter__(self) -> Iterator[ChunkResult]:
        if not self.words:
            return

        # Text that fits in one chunk is returned as-is
        if len(self.words) <= self.chunk_size:
            yield ChunkResult(
                text=self.text,
                start_word=0,
                end_word=len(self.words),
                chunk_index=0
            )
            return

        start = 0
        index = 0
        while start < len(self.words):
            if self.max_chunks is not None and index >= self.max_chunks:
                return
            end = min(start + self.chunk_size, len(self.words))
            yield ChunkResult(
                text=" ".join(self.words[start:end]),
                start_word=start,
                end_word=end,
                chunk_index=index
            )
            if end == len(self.words):
                return
            start += self.step
            index += 1

    def get_texts(self) -> List[str]:
        """Get just the text content of all chunks."""
        return [c.text for c in self]


def chunk_words(
    text: str,
    chunk_size: int = 100,
    overlap: int = 20,
    max_chunks: Optional[int] = None
) -> WordChunks:
    """
    Chunk text into overlapping word windows.

    This is the main entry point for chunking operations.

    Args:
        text: Text to chunk
        chunk_size: Words per chunk (default: 100)
        overlap: Words shared between consecutive chunks (default: 20)
        max_chunks: Optional maximum number of chunks to yield

    Returns:
        WordChunks sequence; empty for empty or whitespace-only text

    Raises:
        ValueError: If chunk_size < 1 or overlap < 0
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ValueError(f"overlap must not be negative, got {overlap}")

    words = text.split() if text else []
    chunks = WordChunks(
        text=text or "",
        words=words,
        chunk_size=chunk_size,
        overlap=overlap,
        max_chunks=max_chunks,
        config_used={
            "chunk_size": chunk_size,
            "overlap": overlap,
            "max_chunks": max_chunks,
        }
    )

    if max_chunks is not None and chunks._window_count() > max_chunks:
        logger.warning(
            f"Truncating from {chunks._window_count()} to {max_chunks} chunks"
        )

    logger.debug(
        f"Chunked {len(words)} words into {len(chunks)} chunks "
        f"(size={chunk_size}, overlap={overlap})"
    )
    return chunks


def should_chunk(text: str, chunk_size: int = 100) -> bool:
    """
    Determine if text spans more than one chunk.

    Args:
        text: Text to check
        chunk_size: Chunk size threshold in words

    Returns:
        True if text exceeds chunk_size words
    """
    if not text:
        return False
    return len(text.split()) > chunk_size
