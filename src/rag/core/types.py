"""
Core data types for the board retrieval module.

Uses dataclasses for configuration objects shared by providers and services.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class PipelineStage(str, Enum):
    """Pipeline stage an operation (or failure) belongs to."""
    CHUNK = "chunk"
    EMBED = "embed"
    STORE = "store"
    DELETE = "delete"
    RETRIEVE = "retrieve"
    GENERATE = "generate"

    def __str__(self) -> str:
        return self.value


class IngestionStatus(str, Enum):
    """Status of an ingestion job for a content unit."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class LLMConfig:
    """
    Configuration for an embedding or text-generation provider.

    Attributes:
        provider: Provider name ('ollama' or 'gemini')
        model: Model identifier (e.g., 'nomic-embed-text', 'llama3.2')
        base_url: Base URL for the provider API
        api_key: API key (Gemini)
        temperature: Sampling temperature (0.0-2.0)
        max_tokens: Maximum tokens in response
        timeout_seconds: Request timeout in seconds
        stream: Whether to use streaming responses
        extra_params: Additional provider-specific parameters
    """
    provider: str
    model: str
    base_url: str = "http://localhost:11434"
    api_key: Optional[str] = None
    temperature: float = 0.2
    max_tokens: Optional[int] = None
    timeout_seconds: int = 60
    stream: bool = False
    extra_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineConfig:
    """
    Configuration for the ingestion pipeline.

    Attributes:
        max_workers: Detached ingestion jobs running at once
        embed_concurrency: Parallel embedding calls within one unit
        dimensions: Embedding dimensionality for this deployment
    """
    max_workers: int = 4
    embed_concurrency: int = 1
    dimensions: int = 768


@dataclass
class AnswerConfig:
    """
    Configuration for the RAG answerer.

    Attributes:
        top_k: Chunks retrieved per question
        max_context_chars: Character budget for the assembled context (at least top_k)
        summary_max_units: Units sampled for a board summary
        summary_chars_per_unit: Characters taken from each sampled unit
    """
    top_k: int = 10
    max_context_chars: int = 8000
    summary_max_units: int = 20
    summary_chars_per_unit: int = 200
