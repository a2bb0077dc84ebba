"""
Vector Store Data Models

Data models for stored chunk embeddings and search results. These map to
the `unit_embedding` table of the SQL Server backend and to the snapshots
held by the in-memory backend.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple


class ChunkVector(NamedTuple):
    """One embedded chunk handed to `VectorStore.upsert_unit`."""
    index: int
    text: str
    vector: List[float]


@dataclass(frozen=True)
class EmbeddingRecord:
    """
    One stored chunk of a content unit with its embedding.

    `chunk_index` is unique per unit and the indices of a unit are
    contiguous from 0 in text order.

    Attributes:
        unit_id: Content unit the chunk belongs to
        board_id: Board the unit belongs to
        chunk_index: Position of the chunk within the unit
        chunk_text: Chunk content
        vector: Embedding vector
        created_utc: Time the record's generation was written
    """
    unit_id: str
    board_id: str
    chunk_index: int
    chunk_text: str
    vector: List[float] = field(repr=False)
    created_utc: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
        compare=False,
    )

    @property
    def dimensions(self) -> int:
        return len(self.vector)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "unit_id": self.unit_id,
            "board_id": self.board_id,
            "chunk_index": self.chunk_index,
            "chunk_text": self.chunk_text,
            "vector": list(self.vector),
            "created_utc": self.created_utc.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmbeddingRecord":
        """Create from dictionary."""
        created = data.get("created_utc")
        if isinstance(created, str):
            created = datetime.fromisoformat(created)
        elif created is None:
            created = datetime.now(timezone.utc)

        return cls(
            unit_id=data["unit_id"],
            board_id=data["board_id"],
            chunk_index=data["chunk_index"],
            chunk_text=data["chunk_text"],
            vector=data["vector"],
            created_utc=created,
        )


@dataclass(frozen=True)
class SearchHit:
    """
    A ranked search result.

    Attributes:
        unit_id: Content unit of the matching chunk
        chunk_index: Position of the chunk within the unit
        chunk_text: Chunk content
        similarity: 1 - cosine distance to the query (1.0 = identical direction)
    """
    unit_id: str
    chunk_index: int
    chunk_text: str
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "unit_id": self.unit_id,
            "chunk_index": self.chunk_index,
            "chunk_text": self.chunk_text,
            "similarity": self.similarity,
        }
