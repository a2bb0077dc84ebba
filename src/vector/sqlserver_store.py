"""
SQL Server-backed vector store.

Records live in `[schema].[unit_embedding]`, one row per chunk with the
vector serialized as JSON. Similarity is computed in Python over the
board-scoped candidate rows; every value reaching SQL is bound as a
parameter.
"""

import json
import logging
import re
import threading
from typing import Iterable, List, Optional, Sequence

try:
    import pyodbc
except ImportError:
    pyodbc = None

from rag.core.exceptions import DimensionMismatchError, StorageError

from .contracts.models import ChunkVector, EmbeddingRecord, SearchHit
from .similarity import rank_records
from .store import VectorStore


logger = logging.getLogger(__name__)


# Keeps IN-list parameters well under SQL Server's 2100 parameter limit
MAX_IN_CLAUSE_IDS = 1000


class SqlServerVectorStore(VectorStore):
    """
    SQL Server implementation of the vector store.

    Features:
    - Delete-then-insert replace inside one transaction per unit
    - HOLDLOCK on the delete so concurrent replaces of a unit serialize
    - HOLDLOCK on every read, committed after the fetch: a reader keeps its
      shared range locks for the whole statement, so it sees either the
      complete old generation of a unit or the complete new one. A reader
      and a replace that deadlock surface as StorageError on the victim.
    - Thread-local connections for concurrent ingestion workers
    """

    def __init__(
        self,
        connection_string: Optional[str] = None,
        host: str = "localhost",
        port: int = 1433,
        database: str = "NeuroBoard",
        username: str = "sa",
        password: Optional[str] = None,
        driver: str = "ODBC Driver 18 for SQL Server",
        schema: str = "rag",
        dimensions: Optional[int] = None,
        auto_init: bool = True,
        trust_server_certificate: bool = True,
    ):
        """
        Initialize the SQL Server vector store.

        Args:
            connection_string: Full ODBC connection string (if provided, other params ignored)
            host: SQL Server host
            port: SQL Server port
            database: Database name
            username: Database username
            password: Database password
            driver: ODBC driver name
            schema: Schema name for tables (default: 'rag')
            dimensions: Vector dimensionality; when None the dimensionality of
                already stored rows (or of the first write) is used
            auto_init: Whether to create schema and tables automatically
            trust_server_certificate: Whether to trust self-signed certificates (for local Docker)
        """
        if pyodbc is None:
            raise ImportError(
                "pyodbc is required for SqlServerVectorStore. "
                "Install with: pip install pyodbc"
            )

        if not self._is_valid_identifier(schema):
            raise ValueError(f"Invalid schema name: {schema}")

        super().__init__(dimensions)
        self.schema = schema
        self.table = f"[{schema}].[unit_embedding]"

        if connection_string:
            self.connection_string = connection_string
        else:
            trust_cert = "yes" if trust_server_certificate else "no"
            self.connection_string = (
                f"Driver={{{driver}}};"
                f"Server={host},{port};"
                f"Database={database};"
                f"UID={username};"
                f"PWD={password};"
                f"TrustServerCertificate={trust_cert}"
            )

        self._thread_local = threading.local()
        self._connections = []
        self._connections_lock = threading.Lock()
        self._connect()

        if auto_init:
            self._init_schema()
        self._bind_stored_dimensions()

    def _is_valid_identifier(self, name: str) -> bool:
        """
        Validate that a name is a safe SQL identifier.

        Must start with a letter or underscore, contain only letters, digits
        and underscores, fit SQL Server's 128 character limit and not be a
        reserved word.
        """
        if not name or len(name) > 128:
            return False

        if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', name):
            return False

        reserved_words = {
            'select', 'insert', 'update', 'delete', 'drop', 'create', 'alter',
            'exec', 'execute', 'union', 'where', 'from', 'table', 'database',
            'schema', 'index', 'grant', 'revoke', 'truncate', 'declare', 'set'
        }
        return name.lower() not in reserved_words

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self._get_conn()
            logger.debug(f"Connected to SQL Server vector store (schema: {self.schema})")
        except pyodbc.Error as e:
            logger.error(f"Failed to connect to SQL Server: {e}")
            raise StorageError(f"Failed to connect to SQL Server: {e}") from e

    def _get_conn(self):
        """Get (or create) a thread-local connection for safe concurrent use."""
        conn = getattr(self._thread_local, "conn", None)
        if conn is None:
            conn = pyodbc.connect(self.connection_string)
            self._thread_local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    def _init_schema(self) -> None:
        """Create the schema, table and board index if missing."""
        conn = self._get_conn()
        cursor = conn.cursor()

        try:
            # Schema name is validated in __init__; CREATE SCHEMA cannot take parameters
            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = ?)
                BEGIN
                    EXEC('CREATE SCHEMA [{self.schema}]')
                END
            """, (self.schema,))

            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.tables t
                               JOIN sys.schemas s ON t.schema_id = s.schema_id
                               WHERE t.name = 'unit_embedding' AND s.name = ?)
                BEGIN
                    CREATE TABLE {self.table} (
                        unit_id NVARCHAR(200) NOT NULL,
                        board_id NVARCHAR(200) NOT NULL,
                        chunk_index INT NOT NULL,
                        chunk_text NVARCHAR(MAX) NOT NULL,
                        vector_json NVARCHAR(MAX) NOT NULL,
                        vector_dim INT NOT NULL,
                        created_utc DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME(),
                        CONSTRAINT [PK_{self.schema}_unit_embedding] PRIMARY KEY (unit_id, chunk_index)
                    )
                END
            """, (self.schema,))

            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.indexes
                               WHERE name = 'IX_unit_embedding_board'
                               AND object_id = OBJECT_ID('{self.table}'))
                BEGIN
                    CREATE INDEX IX_unit_embedding_board ON {self.table} (board_id, unit_id)
                END
            """)

            conn.commit()
            logger.debug(f"Vector store schema ready: {self.table}")
        except pyodbc.Error as e:
            conn.rollback()
            logger.error(f"Failed to initialize vector store schema: {e}")
            raise StorageError(f"Failed to initialize vector store schema: {e}") from e

    def _bind_stored_dimensions(self) -> None:
        """Adopt (or verify against) the dimensionality of stored rows."""
        cursor = self._get_conn().cursor()
        try:
            cursor.execute(f"SELECT TOP 1 vector_dim FROM {self.table}")
            row = cursor.fetchone()
        except pyodbc.Error as e:
            raise StorageError(f"Failed to read stored dimensions: {e}") from e

        if row is None:
            return

        stored = int(row[0])
        if self._dimensions is None:
            self._dimensions = stored
        elif self._dimensions != stored:
            raise DimensionMismatchError(expected=self._dimensions, actual=stored)

    # =========================================================================
    # Mutations
    # =========================================================================

    def upsert_unit(
        self,
        unit_id: str,
        board_id: str,
        chunks: Sequence[ChunkVector],
    ) -> int:
        ordered = self._prepare_chunks(unit_id, board_id, chunks)
        rows = [
            (
                unit_id,
                board_id,
                chunk.index,
                chunk.text,
                json.dumps(list(chunk.vector)),
                len(chunk.vector),
            )
            for chunk in ordered
        ]

        conn = self._get_conn()
        cursor = conn.cursor()
        try:
            cursor.execute(
                f"DELETE FROM {self.table} WITH (HOLDLOCK) WHERE unit_id = ?",
                (unit_id,),
            )
            if rows:
                cursor.executemany(
                    f"""
                    INSERT INTO {self.table}
                        (unit_id, board_id, chunk_index, chunk_text, vector_json, vector_dim)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
            conn.commit()
        except pyodbc.Error as e:
            conn.rollback()
            logger.error(f"Failed to replace records for unit {unit_id}: {e}")
            raise StorageError(
                f"Failed to replace records: {e}",
                unit_id=unit_id,
                board_id=board_id,
                stage="store",
            ) from e

        logger.debug(f"Stored {len(rows)} records for unit {unit_id} on board {board_id}")
        return len(rows)

    def delete_unit(self, unit_id: str) -> int:
        conn = self._get_conn()
        cursor = conn.cursor()
        try:
            cursor.execute(f"DELETE FROM {self.table} WITH (HOLDLOCK) WHERE unit_id = ?", (unit_id,))
            removed = cursor.rowcount
            conn.commit()
        except pyodbc.Error as e:
            conn.rollback()
            logger.error(f"Failed to delete records for unit {unit_id}: {e}")
            raise StorageError(
                f"Failed to delete records: {e}",
                unit_id=unit_id,
                stage="delete",
            ) from e

        removed = max(removed, 0)
        if removed:
            logger.debug(f"Deleted {removed} records for unit {unit_id}")
        return removed

    # =========================================================================
    # Queries
    # =========================================================================

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

        sql = (
            f"SELECT unit_id, board_id, chunk_index, chunk_text, vector_json, created_utc "
            f"FROM {self.table} WITH (HOLDLOCK) WHERE board_id = ?"
        )
        params: list = [board_id]

        wanted = None
        if unit_ids is not None:
            unique_ids = list(dict.fromkeys(unit_ids))
            if len(unique_ids) <= MAX_IN_CLAUSE_IDS:
                placeholders = ", ".join("?" for _ in unique_ids)
                sql += f" AND unit_id IN ({placeholders})"
                params.extend(unique_ids)
            else:
                wanted = set(unique_ids)

        records = self._query_records(sql, params)
        if wanted is not None:
            records = (record for record in records if record.unit_id in wanted)

        return rank_records(query_vector, records, limit)

    def get_unit_records(self, unit_id: str) -> List[EmbeddingRecord]:
        sql = (
            f"SELECT unit_id, board_id, chunk_index, chunk_text, vector_json, created_utc "
            f"FROM {self.table} WITH (HOLDLOCK) WHERE unit_id = ? ORDER BY chunk_index"
        )
        return list(self._query_records(sql, [unit_id]))

    def board_overview(self, board_id: str, max_units: int) -> List[EmbeddingRecord]:
        self._check_limit(max_units)
        sql = (
            f"SELECT TOP (?) unit_id, board_id, chunk_index, chunk_text, vector_json, created_utc "
            f"FROM {self.table} WITH (HOLDLOCK) WHERE board_id = ? AND chunk_index = 0 ORDER BY unit_id"
        )
        return list(self._query_records(sql, [max_units, board_id]))

    def _query_records(self, sql: str, params: list) -> Iterable[EmbeddingRecord]:
        # Shared locks are held until commit, so a replace cannot land mid-read
        conn = self._get_conn()
        cursor = conn.cursor()
        try:
            cursor.execute(sql, params)
            rows = cursor.fetchall()
            conn.commit()
        except pyodbc.Error as e:
            conn.rollback()
            logger.error(f"Vector store query failed: {e}")
            raise StorageError(f"Vector store query failed: {e}") from e

        return [
            EmbeddingRecord(
                unit_id=row[0],
                board_id=row[1],
                chunk_index=row[2],
                chunk_text=row[3],
                vector=json.loads(row[4]),
                created_utc=row[5],
            )
            for row in rows
        ]

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._connections_lock:
            connections, self._connections = self._connections, []

        for conn in connections:
            try:
                conn.close()
            except pyodbc.Error as e:
                logger.warning(f"Error closing SQL Server connection: {e}")

        self._thread_local = threading.local()
