"""
Retrieval module for board question answering.

This module provides:
- Chunking: Split unit text into retrievable windows
- Embedding: Dimension-checked embedding over a provider
- Indexing: Detached per-unit ingestion into the vector store
- Search: Board-scoped retrieval of relevant chunks
- Answering: Grounded answers with source attribution
"""

from .answerer import BoardAnswerer, fit_to_budget
from .chat import ChatService, GroupResolver, StaticGroupResolver
from .chunker import Chunker, chunk_text
from .embedder import EmbeddingClient
from .indexer import IngestionPipeline, IngestionStatusListener
from .search import Retriever

__all__ = [
    "BoardAnswerer",
    "ChatService",
    "Chunker",
    "EmbeddingClient",
    "GroupResolver",
    "IngestionPipeline",
    "IngestionStatusListener",
    "Retriever",
    "StaticGroupResolver",
    "chunk_text",
    "fit_to_budget",
]
