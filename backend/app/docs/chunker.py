"""Document chunker - fixed-size windows with overlap."""

import math

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200


def expected_chunk_count(text_length: int, size: int, overlap: int) -> int:
    """Number of windows ``chunk_text`` produces before any count cap."""
    if text_length == 0:
        return 0
    if text_length <= size:
        return 1
    return math.ceil((text_length - overlap) / (size - overlap))


def chunk_text(
    text: str,
    *,
    size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
    max_chunks: int | None = None,
) -> list[str]:
    """Split text into overlapping windows of ``size`` characters.

    Pure function with no I/O or randomness. Each window after the first
    starts ``overlap`` characters before the previous one ended, so text near
    a boundary is present in both neighbours. The last window may be short.

    Args:
        text: Extracted document text
        size: Window length in characters
        overlap: Characters shared by consecutive windows (must be < size)
        max_chunks: Keep only the earliest chunks when set

    Returns:
        Ordered chunk contents, each stripped of surrounding whitespace.
        List position is the chunk_index.

    Raises:
        ValueError: If size/overlap do not describe a forward-moving window

    Example:
        size=1000, overlap=200, len(text)=2500 gives windows
        [0,1000), [800,1800), [1600,2500).
    """
    if size <= 0:
        raise ValueError("size must be positive")
    if overlap < 0 or overlap >= size:
        raise ValueError("overlap must satisfy 0 <= overlap < size")

    chunks: list[str] = []
    start = 0
    text_length = len(text)

    while start < text_length:
        if max_chunks is not None and len(chunks) >= max_chunks:
            break

        end = min(start + size, text_length)
        chunks.append(text[start:end].strip())

        if end >= text_length:
            break
        start = end - overlap

    return chunks
