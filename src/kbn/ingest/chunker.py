"""Overlapping text chunking that prefers natural boundaries."""

import re
from typing import Any

from ..models import Chunk

_SENTENCE_END = re.compile(r"[.!?][\s]")


def _find_boundary(text: str, lo: int, hi: int) -> int:
    """Return the cut position in (lo, hi] after the strongest separator, or hi."""
    for sep in ("\n\n", "\n"):
        p = text.rfind(sep, lo, hi)
        if p != -1:
            return p + len(sep)

    last = None
    for m in _SENTENCE_END.finditer(text, lo, hi):
        last = m
    if last is not None:
        return last.end()

    p = text.rfind(" ", lo, hi)
    if p != -1:
        return p + 1
    return hi


def split_text(
    text: str,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
    respect_boundaries: bool = True,
) -> list[str]:
    """Split text into overlapping windows.

    Every chunk is at most ``chunk_size`` characters and starts with the last
    ``chunk_overlap`` characters of the previous one, so dropping that prefix
    from every chunk but the first and concatenating gives back ``text``.

    Args:
        text: The text to chunk.
        chunk_size: Maximum characters per chunk.
        chunk_overlap: Characters shared by consecutive chunks.
        respect_boundaries: If True, end windows at paragraph, line, sentence
            or word breaks when one exists past the overlap.

    Returns:
        List of text chunks; empty for blank input.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be in [0, chunk_size)")
    if not text or not text.strip():
        return []

    chunks: list[str] = []
    n = len(text)
    start = 0
    while True:
        end = min(start + chunk_size, n)
        if end < n and respect_boundaries:
            # the cut must land past the overlap or the next window would not advance
            end = _find_boundary(text, start + chunk_overlap + 1, end)
        chunks.append(text[start:end])
        if end >= n:
            break
        start = end - chunk_overlap

    return chunks


def join_chunks(chunks: list[str], chunk_overlap: int) -> str:
    """Inverse of split_text."""
    if not chunks:
        return ""
    return chunks[0] + "".join(c[chunk_overlap:] for c in chunks[1:])


def build_chunks(
    text: str,
    metadata: dict[str, Any],
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
    respect_boundaries: bool = True,
) -> list[Chunk]:
    """Split text and attach the source metadata and global index to each chunk."""
    return [
        Chunk(content=c, index=i, metadata=dict(metadata))
        for i, c in enumerate(split_text(text, chunk_size, chunk_overlap, respect_boundaries))
    ]
