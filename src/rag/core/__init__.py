"""
Core subpackage for the board retrieval module.

Contains configuration, types, exceptions, and logging utilities.
"""

from .types import (
    AnswerConfig,
    IngestionStatus,
    LLMConfig,
    PipelineConfig,
    PipelineStage,
)
from .exceptions import (
    DimensionMismatchError,
    EmbeddingBatchError,
    IngestionError,
    InvalidInputError,
    PartialIngestionError,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RagConfigError,
    RagError,
    StorageError,
)

__all__ = [
    # Types
    "AnswerConfig",
    "IngestionStatus",
    "LLMConfig",
    "PipelineConfig",
    "PipelineStage",
    # Exceptions
    "DimensionMismatchError",
    "EmbeddingBatchError",
    "IngestionError",
    "InvalidInputError",
    "PartialIngestionError",
    "ProviderError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "RagConfigError",
    "RagError",
    "StorageError",
]
