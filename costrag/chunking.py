"""Text chunking for document processing."""

import re
from typing import List

from .exceptions import ValidationError

# C0 and C1 control characters
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_WHITESPACE = re.compile(r"\s+")


def prepare_text(text: str) -> str:
    """Strip control characters, collapse whitespace runs, and trim."""
    # Whitespace controls (tab, newline) become spaces before the rest are dropped
    cleaned = _CONTROL_CHARS.sub("", _WHITESPACE.sub(" ", text))
    return _WHITESPACE.sub(" ", cleaned).strip()


def chunk_text(
    text: str,
    chunk_size: int = 512,
    overlap: int = 50,
    *,
    clean: bool = False,
) -> List[str]:
    """
    Split text into overlapping windows of words.

    Windows are ``chunk_size`` words long and each one starts
    ``chunk_size - overlap`` words after the previous one, so consecutive
    chunks share ``overlap`` words. Chunking stops with the first window
    that reaches the end of the text. When ``overlap >= chunk_size`` the
    window advances by a single word.

    Args:
        text: Input text to chunk
        chunk_size: Words per chunk
        overlap: Words shared between consecutive chunks
        clean: Run ``prepare_text`` first

    Returns:
        List of text chunks; empty only when ``text`` has no words
    """
    if chunk_size < 1:
        raise ValidationError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ValidationError(f"overlap must not be negative, got {overlap}")

    if clean:
        text = prepare_text(text)

    words = text.split()
    step = max(1, chunk_size - overlap)

    chunks = []
    start = 0
    while start < len(words):
        end = start + chunk_size
        chunks.append(" ".join(words[start:end]))
        # The tail is already covered; another window would be pure overlap
        if end >= len(words):
            break
        start += step
    return chunks
