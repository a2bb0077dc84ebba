"""
Retrieval Contracts - Data models for chunking, chat and ingestion results.

Uses dataclasses following the pattern of the vector contracts in
`vector.contracts.models`.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.exceptions import InvalidInputError


@dataclass
class ChunkingPolicy:
    """
    Policy for chunking unit text into retrievable segments.

    Policy parameters are validated on construction so a bad configuration
    fails at startup rather than on the first document.

    Attributes:
        chunk_size: Window size in characters
        overlap: Characters shared by consecutive windows
        max_chunks_per_unit: Optional cap; keeps the first N chunks
        version: Policy version identifier
    """
    chunk_size: int = 500
    overlap: int = 50
    max_chunks_per_unit: Optional[int] = None
    version: str = "1.0"

    def __post_init__(self):
        validate_chunk_params(self.chunk_size, self.overlap)
        if self.max_chunks_per_unit is not None and self.max_chunks_per_unit <= 0:
            raise InvalidInputError("max_chunks_per_unit must be positive")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "chunk_size": self.chunk_size,
            "overlap": self.overlap,
            "max_chunks_per_unit": self.max_chunks_per_unit,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChunkingPolicy":
        """Create from dictionary."""
        return cls(
            chunk_size=data.get("chunk_size", 500),
            overlap=data.get("overlap", 50),
            max_chunks_per_unit=data.get("max_chunks_per_unit"),
            version=data.get("version", "1.0"),
        )


def validate_chunk_params(chunk_size: int, overlap: int) -> None:
    """
    Check chunking parameters, raising InvalidInputError when invalid.

    Requires chunk_size > 0 and 0 <= overlap < chunk_size.
    """
    if chunk_size <= 0:
        raise InvalidInputError("chunk_size must be positive")

    if overlap < 0:
        raise InvalidInputError("overlap must be non-negative")

    if overlap >= chunk_size:
        raise InvalidInputError("overlap must be less than chunk_size")


@dataclass(frozen=True)
class TextChunk:
    """
    A bounded substring of a unit's text.

    Attributes:
        text: Chunk content
        index: Position in the unit's chunk sequence (0-based)
        start_offset: Start character offset in the source text
        end_offset: End character offset (exclusive)
    """
    text: str
    index: int
    start_offset: int = 0
    end_offset: int = 0


@dataclass
class SourceRef:
    """
    Attribution for one chunk used to ground an answer.

    Attributes:
        unit_id: Content unit the chunk came from
        chunk_index: Chunk position within the unit
        relevance: Cosine similarity the chunk was ranked by, at most 1.0.
            Usually in [0, 1]; a chunk pointing away from the question can
            score below 0, so display code should not assume a floor of 0.
    """
    unit_id: str
    chunk_index: int
    relevance: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "unit_id": self.unit_id,
            "chunk_index": self.chunk_index,
            "relevance": self.relevance,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceRef":
        """Create from dictionary."""
        return cls(
            unit_id=data["unit_id"],
            chunk_index=data["chunk_index"],
            relevance=data["relevance"],
        )


@dataclass
class ChatRequest:
    """
    A question asked against a board.

    Attributes:
        board_id: Board to search
        query: Natural-language question
        unit_ids: Optional explicit unit filter
        group_ids: Optional group filter, expanded to unit ids by a resolver
    """
    board_id: str
    query: str
    unit_ids: Optional[List[str]] = None
    group_ids: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatRequest":
        """Create from a request payload: {board_id, query, options: {...}}."""
        options = data.get("options") or {}
        return cls(
            board_id=data["board_id"],
            query=data.get("query", ""),
            unit_ids=options.get("unit_ids"),
            group_ids=options.get("group_ids"),
        )


@dataclass
class ChatAnswer:
    """
    Generated answer with its source attributions.

    `sources[i]` is the chunk labelled `[Source i+1]` in the prompt context.

    Attributes:
        answer: Answer text
        sources: Attributions in retrieval rank order
        context_truncated: True when chunk texts were cut to fit the context budget
    """
    answer: str
    sources: List[SourceRef] = field(default_factory=list)
    context_truncated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "answer": self.answer,
            "sources": [s.to_dict() for s in self.sources],
            "context_truncated": self.context_truncated,
        }


@dataclass
class IngestionResult:
    """
    Outcome of indexing one content unit.

    Attributes:
        unit_id: Indexed unit
        board_id: Board the unit belongs to
        chunk_count: Records stored for the unit
        content_sha256: Hash of the indexed text
        duration_ms: Time taken in milliseconds
    """
    unit_id: str
    board_id: str
    chunk_count: int
    content_sha256: str
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "unit_id": self.unit_id,
            "board_id": self.board_id,
            "chunk_count": self.chunk_count,
            "content_sha256": self.content_sha256,
            "duration_ms": self.duration_ms,
        }


__all__ = [
    "ChatAnswer",
    "ChatRequest",
    "ChunkingPolicy",
    "IngestionResult",
    "SourceRef",
    "TextChunk",
    "validate_chunk_params",
]
