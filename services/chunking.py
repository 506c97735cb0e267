from __future__ import annotations

import logging
import math
from typing import Iterator, List


logger = logging.getLogger(__name__)


def split_text(text: str, max_chunk_size: int) -> Iterator[str]:
    """Yield line-aligned chunks of at most max_chunk_size characters.

    Lines are never split: a single line longer than max_chunk_size is
    emitted as its own oversized chunk. Joining the chunks with "\\n"
    reproduces the input exactly.
    """
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")
    if not text:
        return

    buffer: List[str] = []
    size = 0
    emitted = 0
    for line in text.split("\n"):
        if buffer and size + 1 + len(line) > max_chunk_size:
            emitted += 1
            logger.debug("Chunk %d created: %d chars", emitted, size)
            yield "\n".join(buffer)
            buffer = [line]
            size = len(line)
        elif buffer:
            buffer.append(line)
            size += 1 + len(line)
        else:
            buffer = [line]
            size = len(line)

    if buffer:
        emitted += 1
        logger.debug("Final chunk %d created: %d chars", emitted, size)
        yield "\n".join(buffer)


def count_chunks(text: str, chunk_size: int) -> int:
    """Number of fixed-width slices needed to cover text."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return math.ceil(len(text) / chunk_size)


def slice_chunk(text: str, index: int, chunk_size: int) -> str:
    start = index * chunk_size
    return text[start:start + chunk_size]
