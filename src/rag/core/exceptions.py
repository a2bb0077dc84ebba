"""
Custom exceptions for the board retrieval module.

Every error carries the unit, board and pipeline stage it happened in so the
ingestion status callback can relay an actionable reason.
"""

from typing import Any, Dict, List, Optional


class RagError(Exception):
    """Base exception for all retrieval pipeline errors."""

    def __init__(
        self,
        message: str,
        unit_id: Optional[str] = None,
        board_id: Optional[str] = None,
        stage: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.unit_id = unit_id
        self.board_id = board_id
        self.stage = stage

    def context(self) -> Dict[str, Any]:
        """Return the non-empty error context for logs and status callbacks."""
        data = {
            "error_type": type(self).__name__,
            "unit_id": self.unit_id,
            "board_id": self.board_id,
            "stage": str(self.stage) if self.stage else None,
        }
        return {k: v for k, v in data.items() if v is not None}

    def reason(self) -> str:
        """Short human-readable reason, prefixed with the stage when known."""
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message


class InvalidInputError(RagError, ValueError):
    """
    Input rejected synchronously; never retried.

    Raised when:
    - The query is empty or blank
    - Chunking parameters are invalid (overlap >= size, size <= 0)
    - A search limit is <= 0
    - Chunk indices passed to a store are not contiguous from 0
    """
    pass


class RagConfigError(RagError):
    """
    Error in pipeline configuration.

    Raised when:
    - Configuration file is missing or invalid
    - Required configuration values are not set
    - Configuration values are out of valid range
    """
    pass


class DimensionMismatchError(RagConfigError):
    """
    A vector does not have the dimensionality the store is bound to.

    Fatal configuration error: surfaced immediately, never retried.
    """

    def __init__(self, expected: int, actual: int, **kwargs):
        super().__init__(
            f"Vector dimension mismatch: expected {expected}, got {actual}",
            **kwargs,
        )
        self.expected = expected
        self.actual = actual


class ProviderError(RagError):
    """
    Error communicating with an embedding or text-generation provider.

    Retryable by the caller with backoff; the pipeline never retries.
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.provider = provider
        self.status_code = status_code

    def context(self) -> Dict[str, Any]:
        data = super().context()
        if self.provider:
            data["provider"] = self.provider
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data


class ProviderUnavailableError(ProviderError):
    """
    Provider unreachable or returned an error response.

    Raised when:
    - Connection fails
    - Provider returns a non-2xx status
    - Response body is not valid JSON or lacks the expected fields
    """
    pass


class ProviderTimeoutError(ProviderError):
    """Provider call exceeded its configured timeout."""
    pass


class EmbeddingBatchError(ProviderError):
    """
    One or more items of a batch embedding failed.

    Attributes:
        completed: Vectors aligned to the input positions (None where missing)
        failures: Input position -> failure reason
    """

    def __init__(
        self,
        message: str,
        completed: List[Optional[List[float]]],
        failures: Dict[int, str],
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.completed = completed
        self.failures = failures

    @property
    def completed_count(self) -> int:
        return sum(1 for vector in self.completed if vector is not None)


class IngestionError(RagError):
    """Ingestion of a unit failed; the unit keeps its previous generation."""
    pass


class PartialIngestionError(IngestionError):
    """
    Some chunks of a unit were embedded before a later chunk failed.

    Nothing is committed: the unit's stored records stay at the previous
    fully-consistent generation until a full re-run succeeds.
    """

    def __init__(self, message: str, embedded: int, total: int, **kwargs):
        super().__init__(message, **kwargs)
        self.embedded = embedded
        self.total = total


class StorageError(RagError):
    """
    Error persisting or reading embedding records.

    Raised when:
    - The database connection is unavailable
    - A write transaction fails and is rolled back
    """
    pass
