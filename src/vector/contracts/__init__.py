"""
Vector Store Contracts

Data models for stored embeddings and search results.
"""

from .models import (
    ChunkVector,
    EmbeddingRecord,
    SearchHit,
)

__all__ = [
    "ChunkVector",
    "EmbeddingRecord",
    "SearchHit",
]
