"""Tests for the text splitter."""

import pytest

from kbn.ingest.chunker import build_chunks, join_chunks, split_text

PROSE = "\n\n".join(
    f"Paragraph {i}. " + "The quick brown fox jumps over the lazy dog. " * (i + 3)
    for i in range(12)
)


def _check_invariants(text, chunks, size, overlap):
    assert chunks
    assert all(0 < len(c) <= size for c in chunks)
    for prev, cur in zip(chunks, chunks[1:]):
        assert cur[:overlap] == prev[len(prev) - overlap:]
    assert join_chunks(chunks, overlap) == text


def test_short_text_is_one_chunk():
    text = "The sky is blue because of Rayleigh scattering."
    assert split_text(text, chunk_size=1000, chunk_overlap=200) == [text]


def test_blank_input_gives_no_chunks():
    assert split_text("") == []
    assert split_text("   \n\t \n") == []


@pytest.mark.parametrize("size,overlap", [(200, 50), (120, 0), (64, 63), (500, 100)])
def test_invariants_with_boundaries(size, overlap):
    chunks = split_text(PROSE, chunk_size=size, chunk_overlap=overlap)
    assert len(chunks) > 1
    _check_invariants(PROSE, chunks, size, overlap)


def test_invariants_without_boundaries():
    text = "x" * 1050
    chunks = split_text(text, chunk_size=100, chunk_overlap=20, respect_boundaries=False)
    _check_invariants(text, chunks, 100, 20)
    assert all(len(c) == 100 for c in chunks[:-1])


def test_prefers_paragraph_breaks():
    text = "a" * 50 + "\n\n" + "b" * 50
    chunks = split_text(text, chunk_size=80, chunk_overlap=10)
    assert chunks[0].endswith("\n\n")
    _check_invariants(text, chunks, 80, 10)


def test_unbroken_text_is_hard_cut():
    text = "y" * 250
    chunks = split_text(text, chunk_size=100, chunk_overlap=10)
    assert [len(c) for c in chunks] == [100, 100, 70]


@pytest.mark.parametrize("size,overlap", [(0, 0), (10, 10), (10, -1), (10, 20)])
def test_invalid_parameters(size, overlap):
    with pytest.raises(ValueError):
        split_text("some text", chunk_size=size, chunk_overlap=overlap)


def test_build_chunks_attaches_metadata_and_index():
    chunks = build_chunks(PROSE, {"notebookId": "nb", "knowledgeId": "k"}, chunk_size=300, chunk_overlap=30)
    assert [c.index for c in chunks] == list(range(len(chunks)))
    assert all(c.metadata == {"notebookId": "nb", "knowledgeId": "k"} for c in chunks)
    chunks[0].metadata["x"] = 1
    assert "x" not in chunks[1].metadata
