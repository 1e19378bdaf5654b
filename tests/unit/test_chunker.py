"""Unit tests for the chunker module."""

import pytest

from kg_weaver.ingestion.chunker import TextChunk, chunk_text

LOREM = (
    "Lorem ipsum dolor sit amet consectetur adipiscing elit sed do eiusmod tempor "
    "incididunt ut labore et dolore magna aliqua Ut enim ad minim veniam quis nostrud "
    "exercitation ullamco laboris nisi ut aliquip ex ea commodo consequat"
)


def test_fixed_split_is_reproducible() -> None:
    """Flush happens once the buffer would exceed chunk_size."""
    assert chunk_text("a bb ccc dddd", chunk_size=10, chunk_overlap=1) == [
        TextChunk("a bb ccc", 0),
        TextChunk("dddd", 2),
    ]


def test_chunking_is_pure() -> None:
    first = chunk_text(LOREM, 40, 2)
    second = chunk_text(LOREM, 40, 2)
    assert first == second
    assert len(first) > 1


def test_empty_input_yields_no_chunks() -> None:
    assert chunk_text("", 10, 0) == []
    assert chunk_text("   \n\t ", 10, 0) == []


@pytest.mark.parametrize("size", [5, 12, 40, 100])
def test_chunks_respect_size(size: int) -> None:
    for chunk in chunk_text(LOREM, size, 0):
        assert len(chunk.content) <= size or " " not in chunk.content


def test_long_token_is_emitted_whole() -> None:
    chunks = chunk_text("tiny supercalifragilistic end", chunk_size=8, chunk_overlap=0)
    assert [c.content for c in chunks] == ["tiny", "supercalifragilistic", "end"]


def test_no_empty_chunk_when_first_token_is_oversized() -> None:
    chunks = chunk_text("abcdefghijklmnop q", chunk_size=5, chunk_overlap=0)
    assert chunks[0].content == "abcdefghijklmnop"
    assert all(c.content for c in chunks)


def test_indices_advance_by_word_count_minus_overlap() -> None:
    chunks = chunk_text("aa bb cc dd ee ff", chunk_size=8, chunk_overlap=1)
    assert [c.content for c in chunks] == ["aa bb", "cc dd", "ee ff"]
    assert [c.index for c in chunks] == [0, 1, 2]


@pytest.mark.parametrize("overlap", [0, 1, 3, 50])
def test_indices_never_decrease(overlap: int) -> None:
    indices = [c.index for c in chunk_text(LOREM, 20, overlap)]
    assert indices == sorted(indices)
    assert indices[0] == 0


def test_whitespace_runs_are_collapsed() -> None:
    chunks = chunk_text("one\n\ntwo\tthree", chunk_size=100)
    assert chunks == [TextChunk("one two three", 0)]


def test_invalid_parameters_raise() -> None:
    with pytest.raises(ValueError, match="chunk_size"):
        chunk_text("text", 0, 0)
    with pytest.raises(ValueError, match="chunk_overlap"):
        chunk_text("text", 10, -1)
