"""
Chunker - Split unit text into retrievable windows.

Implements fixed-size character windows with overlap:
- Deterministic output for a given (text, chunk_size, overlap)
- Offsets never shift to word or sentence boundaries
- Optional cap on chunks per unit
"""

import logging
from typing import List, Optional

from ..contracts.retrieval_contracts import (
    ChunkingPolicy,
    TextChunk,
    validate_chunk_params,
)

logger = logging.getLogger(__name__)


class Chunker:
    """
    Chunks unit text according to a ChunkingPolicy.

    Example:
        >>> chunker = Chunker(ChunkingPolicy(chunk_size=500, overlap=50))
        >>> chunks = chunker.chunk("Long note text...", unit_id="note-1")
    """

    def __init__(self, policy: Optional[ChunkingPolicy] = None):
        """
        Initialize the chunker.

        Args:
            policy: Chunking policy (uses default if not provided)
        """
        self.policy = policy or ChunkingPolicy()

    def chunk(self, text: str, unit_id: Optional[str] = None) -> List[TextChunk]:
        """
        Split text into chunks, applying the policy's per-unit cap.

        Args:
            text: Unit text
            unit_id: Unit identifier, used for logging only

        Returns:
            List of TextChunk with contiguous indices from 0
        """
        chunks = chunk_text(
            text,
            chunk_size=self.policy.chunk_size,
            overlap=self.policy.overlap,
        )

        limit = self.policy.max_chunks_per_unit
        if limit is not None and len(chunks) > limit:
            logger.warning(
                f"Unit {unit_id} has {len(chunks)} chunks, limiting to {limit}"
            )
            chunks = chunks[:limit]

        logger.debug(f"Created {len(chunks)} chunks from unit {unit_id}")
        return chunks


def chunk_text(
    text: str,
    chunk_size: int = 500,
    overlap: int = 50,
) -> List[TextChunk]:
    """
    Split text into overlapping fixed-size windows.

    Windows start at 0 and advance by `chunk_size - overlap` for as long as
    the start lies inside the text. Windows near the end are shorter than
    `chunk_size`; chunk indices follow the window starts.

    Args:
        text: Text content to chunk
        chunk_size: Window size in characters
        overlap: Characters shared by consecutive windows

    Returns:
        List of TextChunk in text order

    Raises:
        InvalidInputError: If chunk_size <= 0 or overlap is not in [0, chunk_size)

    Example:
        >>> [c.text for c in chunk_text("The quick brown fox. The fox jumps.", 20, 5)]
        ['The quick brown fox.', ' fox. The fox jumps.', 'umps.']
    """
    validate_chunk_params(chunk_size, overlap)

    if not text:
        return []

    chunks = []
    text_len = len(text)
    step = chunk_size - overlap

    start = 0
    while start < text_len:
        end = min(start + chunk_size, text_len)
        chunks.append(
            TextChunk(
                text=text[start:end],
                index=len(chunks),
                start_offset=start,
                end_offset=end,
            )
        )

        start += step

    return chunks
