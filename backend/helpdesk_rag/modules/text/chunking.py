"""Sentence-aware sliding-window chunking of normalized text."""

from typing import Iterator

from .normalizer import normalize

SENTENCE_TERMINATORS = frozenset(".!?")


def chunk(raw_text: str | None, chunk_size: int, overlap: int) -> Iterator[str]:
    """Split ``raw_text`` into overlapping chunks of at most ``chunk_size`` characters.

    The text is normalized first. Each window is cut at the last sentence
    terminator (``.``, ``!``, ``?``) inside it when there is one, so chunks
    tend to end on sentence boundaries; otherwise the raw ``chunk_size`` cut
    is kept. The next window starts ``overlap`` characters before the end
    of the previous one, or exactly at its end when that would not move
    forward. Empty chunks are dropped.

    This is a generator: the sequence can be consumed once.

    Args:
        raw_text: Text to split. It does not need to be normalized.
        chunk_size: Maximum chunk length in characters.
        overlap: Characters shared between consecutive windows (best effort).

    Yields:
        Normalized, trimmed, non-empty chunks in document order.

    Raises:
        ValueError: If ``chunk_size`` is not positive or ``overlap`` is negative.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0:
        raise ValueError("overlap cannot be negative")

    return _iter_chunks(normalize(raw_text), chunk_size, overlap)


def _iter_chunks(text: str, chunk_size: int, overlap: int) -> Iterator[str]:
    if not text:
        return

    if len(text) <= chunk_size:
        yield text
        return

    length = len(text)
    start = 0

    while start < length:
        end = min(start + chunk_size, length)

        boundary = find_sentence_boundary(text, start, end)
        if start < boundary < end:
            end = boundary

        piece = text[start:end].strip()
        if piece:
            yield piece

        if end >= length:
            return

        next_start = end - overlap
        start = next_start if next_start > start else end


def find_sentence_boundary(text: str, start: int, end: int) -> int:
    """Return the index just past the last terminator in ``text[start:end]``.

    Whitespace following the terminator is skipped, so the returned position
    may reach or pass ``end``. Returns -1 when the window has no terminator.
    """
    for i in range(end - 1, start - 1, -1):
        if text[i] in SENTENCE_TERMINATORS:
            boundary = i + 1
            while boundary < len(text) and text[boundary].isspace():
                boundary += 1
            return boundary
    return -1
