"""
Vector Store Module

Board-scoped storage and similarity search for chunk embeddings.

Key components:
- contracts/: Data models (EmbeddingRecord, ChunkVector, SearchHit)
- similarity.py: Cosine similarity and deterministic ranking
- store.py: VectorStore interface, in-memory backend, create_vector_store
- sqlserver_store.py: SQL Server backend (requires pyodbc)

Key concepts:
- Board scope: a search only ever sees records of one board.
- Unit generation: a unit's records are replaced as a whole.
- Bound dimensionality: all vectors in a store have the same length.
"""

__version__ = "0.1.0"
