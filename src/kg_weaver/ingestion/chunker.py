"""Deterministic length-bounded text chunking."""

from __future__ import annotations

from typing import NamedTuple


class TextChunk(NamedTuple):
    """One slice of a document.

    ``index`` is the running word offset assigned when the chunk was
    flushed; it never decreases along a chunk sequence.
    """

    content: str
    index: int


def chunk_text(text: str, chunk_size: int = 512, chunk_overlap: int = 0) -> list[TextChunk]:
    """Split *text* into whitespace-delimited chunks of at most *chunk_size* characters.

    Words are accumulated greedily.  Before a word is added, the buffer is
    flushed if adding it (plus a separating space) would exceed
    *chunk_size*; the running index then advances by the flushed word count
    minus *chunk_overlap*, never by a negative amount.  Words are never
    split, so a single word longer than *chunk_size* becomes a chunk of its
    own.

    Parameters
    ----------
    text:
        Text to split.  Any run of whitespace separates words.
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Number of words by which consecutive chunk indices overlap.

    Returns
    -------
    list[TextChunk]
        Chunks in document order; empty for blank input.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0:
        raise ValueError(f"chunk_overlap must be >= 0, got {chunk_overlap}")

    chunks: list[TextChunk] = []
    buffer: list[str] = []
    # Length of the buffer rendered with a trailing space after every word.
    buffer_len = 0
    index = 0

    for word in text.split():
        if buffer and buffer_len + len(word) + 1 > chunk_size:
            chunks.append(TextChunk(" ".join(buffer), index))
            index += max(len(buffer) - chunk_overlap, 0)
            buffer, buffer_len = [], 0
        buffer.append(word)
        buffer_len += len(word) + 1

    if buffer:
        chunks.append(TextChunk(" ".join(buffer), index))
    return chunks
