"""Outbound response chunking helpers for the chat transport."""

from __future__ import annotations

from typing import List

EMPTY_RESPONSE_PLACEHOLDER = "(empty response)"
BOUNDARY_CHARS = ("\n", " ")


def chunk_text(text: str, max_chars: int) -> List[str]:
    """Split trimmed text into ordered chunks of at most max_chars code points.

    Each window is cut at the last newline or space found after the 75% mark
    of the window; without one the window is hard-cut at max_chars. The
    separator starts the next chunk, so joining the chunks gives back the
    trimmed input exactly.
    """
    limit = int(max_chars)
    if limit < 1:
        raise ValueError("max_chars must be positive")
    content = str(text or "").strip()
    if not content:
        return []
    if len(content) <= limit:
        return [content]

    chunks: List[str] = []
    start = 0
    total = len(content)
    while start < total:
        window = min(limit, total - start)
        cut = window
        if start + window < total:
            floor = window * 3 // 4
            for index in range(window - 1, floor, -1):
                if content[start + index] in BOUNDARY_CHARS:
                    cut = index
                    break
        chunks.append(content[start : start + cut])
        start += cut
    return chunks


def prepare_chunks(text: str, max_chars: int) -> List[str]:
    """Return the messages to deliver for one response, never an empty list."""
    chunks = [chunk for chunk in chunk_text(text, max_chars) if chunk.strip()]
    if not chunks:
        return [EMPTY_RESPONSE_PLACEHOLDER]
    return chunks
