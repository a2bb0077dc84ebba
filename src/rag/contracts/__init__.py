"""
Data contracts for chunking, chat and ingestion.
"""

from .retrieval_contracts import (
    ChatAnswer,
    ChatRequest,
    ChunkingPolicy,
    IngestionResult,
    SourceRef,
    TextChunk,
)

__all__ = [
    "ChatAnswer",
    "ChatRequest",
    "ChunkingPolicy",
    "IngestionResult",
    "SourceRef",
    "TextChunk",
]
