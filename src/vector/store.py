"""
Vector Store - Board-scoped storage and similarity search for chunk embeddings.

Defines the VectorStore interface shared by all backends, the in-memory
backend, and the `create_vector_store` factory. The SQL Server backend
lives in `vector.sqlserver_store`.

Every backend guarantees:
- A unit's records are replaced as a whole; readers never see a mix of the
  old and new generation.
- Searches never cross board boundaries.
- All vectors in a store share one dimensionality.
"""

import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from rag.core.exceptions import DimensionMismatchError, InvalidInputError

from .contracts.models import ChunkVector, EmbeddingRecord, SearchHit
from .similarity import rank_records


logger = logging.getLogger(__name__)


class VectorStore(ABC):
    """
    Abstract base class for embedding record storage.

    A store is bound to one vector dimensionality: the configured
    `dimensions`, or the length of the first vector written when none is
    configured.
    """

    def __init__(self, dimensions: Optional[int] = None):
        if dimensions is not None and dimensions <= 0:
            raise InvalidInputError("dimensions must be positive")
        self._dimensions = dimensions
        self._dimensions_lock = threading.Lock()

    @property
    def dimensions(self) -> Optional[int]:
        """Dimensionality the store is bound to, or None before the first write."""
        return self._dimensions

    @abstractmethod
    def upsert_unit(
        self,
        unit_id: str,
        board_id: str,
        chunks: Sequence[ChunkVector],
    ) -> int:
        """
        Replace every record of a unit with the given chunks, atomically.

        Args:
            unit_id: Content unit to replace
            board_id: Board the unit belongs to
            chunks: Embedded chunks with indices exactly 0..n-1 (any order);
                an empty sequence leaves the unit with no records

        Returns:
            Number of records stored

        Raises:
            InvalidInputError: If chunk indices are not contiguous from 0
            DimensionMismatchError: If a vector has the wrong length
            StorageError: If the backend fails; the previous generation is kept
        """
        pass

    @abstractmethod
    def delete_unit(self, unit_id: str) -> int:
        """
        Remove every record of a unit. Idempotent.

        Returns:
            Number of records removed (0 if the unit had none)
        """
        pass

    @abstractmethod
    def search(
        self,
        query_vector: List[float],
        board_id: str,
        limit: int,
        unit_ids: Optional[Sequence[str]] = None,
    ) -> List[SearchHit]:
        """
        Find the records of a board most similar to a query vector.

        Args:
            query_vector: Query embedding
            board_id: Board to search; records of other boards are never returned
            limit: Maximum number of hits (must be > 0)
            unit_ids: Optional restriction to these units; an empty list
                matches nothing

        Returns:
            Hits ordered by similarity descending, then unit_id, then chunk_index

        Raises:
            InvalidInputError: If limit <= 0
            DimensionMismatchError: If the query has the wrong length
        """
        pass

    @abstractmethod
    def get_unit_records(self, unit_id: str) -> List[EmbeddingRecord]:
        """Return a unit's records ordered by chunk_index."""
        pass

    @abstractmethod
    def board_overview(self, board_id: str, max_units: int) -> List[EmbeddingRecord]:
        """
        Return the first chunk of up to `max_units` units on a board.

        Units are taken in ascending unit_id order.
        """
        pass

    def close(self) -> None:
        """Release backend resources."""
        pass

    def __enter__(self) -> "VectorStore":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # =========================================================================
    # Shared validation
    # =========================================================================

    def _check_dimensions(self, vector: Sequence[float], bind: bool = False) -> None:
        """
        Check a vector against the bound dimensionality.

        With `bind=True` an unbound store adopts the vector's length.
        """
        actual = len(vector)
        if actual == 0:
            raise InvalidInputError("Vectors cannot be empty")

        with self._dimensions_lock:
            if self._dimensions is None:
                if bind:
                    self._dimensions = actual
                    logger.debug(f"Vector store bound to {actual} dimensions")
                return

        if actual != self._dimensions:
            raise DimensionMismatchError(expected=self._dimensions, actual=actual)

    def _prepare_chunks(
        self,
        unit_id: str,
        board_id: str,
        chunks: Sequence[ChunkVector],
    ) -> List[ChunkVector]:
        """Validate chunks for a replace and return them sorted by index."""
        ordered = sorted(chunks, key=lambda chunk: chunk.index)
        indices = [chunk.index for chunk in ordered]

        if indices != list(range(len(ordered))):
            raise InvalidInputError(
                f"Chunk indices must be contiguous from 0, got {indices}",
                unit_id=unit_id,
                board_id=board_id,
            )

        for chunk in ordered:
            try:
                self._check_dimensions(chunk.vector, bind=True)
            except (DimensionMismatchError, InvalidInputError) as e:
                e.unit_id = unit_id
                e.board_id = board_id
                raise

        return ordered

    @staticmethod
    def _check_limit(limit: int) -> None:
        if limit <= 0:
            raise InvalidInputError(f"limit must be positive, got {limit}")


class InMemoryVectorStore(VectorStore):
    """
    Process-local vector store.

    Each unit's records are held as an immutable tuple that is swapped in a
    single assignment under a lock, so a concurrent search sees either the
    whole previous generation or the whole new one.
    """

    def __init__(self, dimensions: Optional[int] = None):
        super().__init__(dimensions)
        self._lock = threading.RLock()
        self._units: Dict[str, Tuple[EmbeddingRecord, ...]] = {}
        self._board_units: Dict[str, set] = {}

    def upsert_unit(
        self,
        unit_id: str,
        board_id: str,
        chunks: Sequence[ChunkVector],
    ) -> int:
        ordered = self._prepare_chunks(unit_id, board_id, chunks)
        records = tuple(
            EmbeddingRecord(
                unit_id=unit_id,
                board_id=board_id,
                chunk_index=chunk.index,
                chunk_text=chunk.text,
                vector=list(chunk.vector),
            )
            for chunk in ordered
        )

        with self._lock:
            self._remove_locked(unit_id)
            if records:
                self._units[unit_id] = records
                self._board_units.setdefault(board_id, set()).add(unit_id)

        logger.debug(f"Stored {len(records)} records for unit {unit_id} on board {board_id}")
        return len(records)

    def delete_unit(self, unit_id: str) -> int:
        with self._lock:
            removed = self._remove_locked(unit_id)

        if removed:
            logger.debug(f"Deleted {removed} records for unit {unit_id}")
        return removed

    def _remove_locked(self, unit_id: str) -> int:
        previous = self._units.pop(unit_id, ())
        if previous:
            board_units = self._board_units.get(previous[0].board_id)
            if board_units is not None:
                board_units.discard(unit_id)
                if not board_units:
                    del self._board_units[previous[0].board_id]
        return len(previous)

    def search(
        self,
        query_vector: List[float],
        board_id: str,
        limit: int,
        unit_ids: Optional[Sequence[str]] = None,
    ) -> List[SearchHit]:
        self._check_limit(limit)
        if unit_ids is not None and len(unit_ids) == 0:
            return []
        self._check_dimensions(query_vector)

        with self._lock:
            board_units = self._board_units.get(board_id, set())
            if unit_ids is not None:
                board_units = board_units.intersection(unit_ids)
            snapshot = [self._units[unit_id] for unit_id in board_units]

        candidates = (record for records in snapshot for record in records)
        return rank_records(query_vector, candidates, limit)

    def get_unit_records(self, unit_id: str) -> List[EmbeddingRecord]:
        with self._lock:
            return list(self._units.get(unit_id, ()))

    def board_overview(self, board_id: str, max_units: int) -> List[EmbeddingRecord]:
        self._check_limit(max_units)
        with self._lock:
            unit_ids = sorted(self._board_units.get(board_id, set()))[:max_units]
            return [self._units[unit_id][0] for unit_id in unit_ids]

    def count(self, board_id: Optional[str] = None) -> int:
        """Count stored records, optionally for one board."""
        with self._lock:
            if board_id is None:
                return sum(len(records) for records in self._units.values())
            return sum(
                len(self._units[unit_id])
                for unit_id in self._board_units.get(board_id, set())
            )


# Lazy import so the in-memory backend works without pyodbc installed
def _get_sqlserver_store():
    from .sqlserver_store import SqlServerVectorStore
    return SqlServerVectorStore


def create_vector_store(
    backend: Optional[str] = None,
    dimensions: Optional[int] = None,
    # SQL Server options
    connection_string: Optional[str] = None,
    host: str = "localhost",
    port: int = 1433,
    database: str = "NeuroBoard",
    username: str = "sa",
    password: Optional[str] = None,
    driver: str = "ODBC Driver 18 for SQL Server",
    schema: str = "rag",
    trust_server_certificate: bool = True,
    auto_init: bool = True,
) -> VectorStore:
    """
    Factory function to create the vector store for a backend.

    Args:
        backend: 'memory' or 'sqlserver'. Defaults to RAG_STORE_BACKEND or 'memory'.
        dimensions: Vector dimensionality to bind the store to

        SQL Server options:
            connection_string: Full ODBC connection string
            host: SQL Server host
            port: SQL Server port
            database: Database name
            username: Database username
            password: Database password (defaults to RAG_SQLSERVER_PASSWORD)
            driver: ODBC driver name
            schema: Schema name for tables
            trust_server_certificate: Trust self-signed certs
            auto_init: Auto-create schema/tables

    Returns:
        VectorStore instance

    Raises:
        ValueError: If backend is not recognized
    """
    if backend is None:
        backend = os.environ.get("RAG_STORE_BACKEND", "memory").lower()

    if backend == "memory":
        return InMemoryVectorStore(dimensions=dimensions)

    elif backend == "sqlserver":
        SqlServerVectorStore = _get_sqlserver_store()

        if password is None:
            password = os.environ.get("RAG_SQLSERVER_PASSWORD") or os.environ.get("MSSQL_SA_PASSWORD")

        if connection_string is None:
            connection_string = os.environ.get("RAG_SQLSERVER_CONN_STR")

        return SqlServerVectorStore(
            connection_string=connection_string,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            driver=driver,
            schema=schema,
            dimensions=dimensions,
            auto_init=auto_init,
            trust_server_certificate=trust_server_certificate,
        )

    else:
        raise ValueError(
            f"Unknown backend: {backend}. "
            "Supported backends: 'memory' (default), 'sqlserver'"
        )
