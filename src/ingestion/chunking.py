"""Sentence-aligned chunking of transcript text for map-phase processing."""

from __future__ import annotations

import re

from src.ingestion.models import Chunk

# A sentence ends at ., ! or ? followed by whitespace (or the end of the text).
_SENTENCE_END_RE = re.compile(r"(?<=[.!?])\s+")


def split_sentences(text: str) -> list[str]:
    """Split *text* into sentences, dropping empty pieces."""
    return [s.strip() for s in _SENTENCE_END_RE.split(text.strip()) if s.strip()]


def sentence_chunk(full_text: str, max_chunk_chars: int = 4000) -> list[Chunk]:
    """Pack whole sentences into chunks of at most *max_chunk_chars* characters.

    A chunk is flushed when appending the next sentence would push it past
    the limit. Sentences are never split, so a single sentence longer than
    the limit becomes a chunk of its own.

    Args:
        full_text: Transcript text to split.
        max_chunk_chars: Maximum chunk length in characters.

    Returns:
        Chunks in text order with sequential ``chunk_index`` values.

    Raises:
        ValueError: If *max_chunk_chars* is not positive.
    """
    if max_chunk_chars <= 0:
        raise ValueError(f"max_chunk_chars must be positive, got {max_chunk_chars}")

    chunks: list[Chunk] = []
    buffer = ""

    for sentence in split_sentences(full_text):
        candidate = f"{buffer} {sentence}" if buffer else sentence
        if buffer and len(candidate) > max_chunk_chars:
            chunks.append(Chunk(content=buffer, chunk_index=len(chunks)))
            buffer = sentence
        else:
            buffer = candidate

    if buffer:
        chunks.append(Chunk(content=buffer, chunk_index=len(chunks)))

    return chunks
