"""
Indexer - Ingest content units into the vector store.

Implements:
- Synchronous indexing of one unit: chunk, embed every chunk, replace records
- Detached ingestion and deletion jobs on a bounded worker pool
- A FIFO single-writer queue per unit, so one unit's replace and delete
  never interleave while different units proceed in parallel
- Completion and failure reporting through an IngestionStatusListener

A unit's stored records change only after all of its chunks embedded
successfully; on any failure the previous generation stays in place.
"""

import logging
import threading
import time
import uuid
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Deque, Dict, Optional

from vector.contracts.models import ChunkVector
from vector.store import VectorStore

from ..contracts.retrieval_contracts import IngestionResult
from ..core.exceptions import (
    EmbeddingBatchError,
    PartialIngestionError,
    RagError,
)
from ..core.logging import CorrelationContext, log_with_context
from ..core.types import IngestionStatus, PipelineStage
from ..core.utils import compute_content_hash
from .chunker import Chunker
from .embedder import EmbeddingClient


logger = logging.getLogger(__name__)


class IngestionStatusListener:
    """
    Receives the outcome of detached ingestion jobs.

    The default implementation only logs; applications override it to
    update node status or notify users.
    """

    def on_ingestion_complete(self, unit_id: str) -> None:
        logger.info(f"Ingestion complete for unit {unit_id}")

    def on_ingestion_failed(self, unit_id: str, reason: str) -> None:
        logger.warning(f"Ingestion failed for unit {unit_id}: {reason}")


@dataclass
class _Job:
    """A queued mutation of one unit."""
    kind: str
    unit_id: str
    board_id: Optional[str] = None
    text: Optional[str] = None
    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    future: Future = field(default_factory=Future)
    status: IngestionStatus = IngestionStatus.PENDING


class IngestionPipeline:
    """
    Chunk -> embed -> store pipeline for content units.

    Example:
        >>> pipeline = IngestionPipeline(Chunker(), embedder, store, listener)
        >>> future = pipeline.on_unit_text_available("U1", "B", "The quick brown fox.")
        >>> future.result().chunk_count
        1
    """

    def __init__(
        self,
        chunker: Chunker,
        embedder: EmbeddingClient,
        store: VectorStore,
        listener: Optional[IngestionStatusListener] = None,
        max_workers: int = 4,
    ):
        """
        Initialize the pipeline.

        Args:
            chunker: Chunker carrying the chunking policy
            embedder: Dimension-checked embedding client
            store: Vector store to write into
            listener: Receives job outcomes (defaults to a logging listener)
            max_workers: Units processed in parallel
        """
        self.chunker = chunker
        self.embedder = embedder
        self.store = store
        self.listener = listener or IngestionStatusListener()

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="ingest",
        )
        self._queues: Dict[str, Deque[_Job]] = {}
        self._lock = threading.Lock()
        self._closed = False

    # =========================================================================
    # Synchronous operations
    # =========================================================================

    def index_unit(self, unit_id: str, board_id: str, text: str) -> IngestionResult:
        """
        Index one unit's text, replacing its previous records.

        Empty text leaves the unit with no records.

        Returns:
            IngestionResult with the number of records stored

        Raises:
            PartialIngestionError: If some chunks embedded before another failed
            ProviderError: If embedding failed before any chunk completed
            DimensionMismatchError: If the provider's vectors do not fit the store
            StorageError: If the store write failed
        """
        start_time = time.time()

        with CorrelationContext(unit_id=unit_id, board_id=board_id):
            chunks = self.chunker.chunk(text, unit_id=unit_id)

            try:
                vectors = self.embedder.embed_batch(
                    [chunk.text for chunk in chunks],
                    fail_fast=True,
                )
            except EmbeddingBatchError as e:
                if e.completed_count > 0:
                    raise PartialIngestionError(
                        f"Embedded {e.completed_count} of {len(chunks)} chunks before failure: "
                        f"{next(iter(e.failures.values()))}",
                        embedded=e.completed_count,
                        total=len(chunks),
                        unit_id=unit_id,
                        board_id=board_id,
                        stage=PipelineStage.EMBED,
                    ) from e
                self._annotate(e, unit_id, board_id, PipelineStage.EMBED)
                raise
            except RagError as e:
                self._annotate(e, unit_id, board_id, PipelineStage.EMBED)
                raise

            try:
                count = self.store.upsert_unit(
                    unit_id,
                    board_id,
                    [
                        ChunkVector(index=chunk.index, text=chunk.text, vector=vector)
                        for chunk, vector in zip(chunks, vectors)
                    ],
                )
            except RagError as e:
                self._annotate(e, unit_id, board_id, PipelineStage.STORE)
                raise

            result = IngestionResult(
                unit_id=unit_id,
                board_id=board_id,
                chunk_count=count,
                content_sha256=compute_content_hash(text or ""),
                duration_ms=int((time.time() - start_time) * 1000),
            )
            log_with_context(
                logger,
                logging.INFO,
                f"Indexed {count} chunks in {result.duration_ms}ms",
                stage=PipelineStage.STORE,
            )
            return result

    def delete_unit(self, unit_id: str) -> int:
        """Remove a unit's records. Idempotent; returns the number removed."""
        with CorrelationContext(unit_id=unit_id):
            try:
                removed = self.store.delete_unit(unit_id)
            except RagError as e:
                self._annotate(e, unit_id, None, PipelineStage.DELETE)
                raise

            log_with_context(
                logger,
                logging.INFO,
                f"Removed {removed} records",
                stage=PipelineStage.DELETE,
            )
            return removed

    @staticmethod
    def _annotate(error: RagError, unit_id: str, board_id: Optional[str], stage: PipelineStage) -> None:
        if error.unit_id is None:
            error.unit_id = unit_id
        if error.board_id is None:
            error.board_id = board_id
        if error.stage is None:
            error.stage = stage

    # =========================================================================
    # Detached jobs
    # =========================================================================

    def on_unit_text_available(self, unit_id: str, board_id: str, text: str) -> Future:
        """
        Schedule (re)indexing of a unit whose text was created or changed.

        Returns:
            Future resolving to an IngestionResult, or to the job's error
        """
        return self._enqueue(_Job(kind="index", unit_id=unit_id, board_id=board_id, text=text))

    def on_unit_deleted(self, unit_id: str) -> Future:
        """
        Schedule removal of a deleted unit's records.

        Returns:
            Future resolving to the number of records removed
        """
        return self._enqueue(_Job(kind="delete", unit_id=unit_id))

    def _enqueue(self, job: _Job) -> Future:
        with self._lock:
            if self._closed:
                raise RuntimeError("IngestionPipeline has been shut down")

            queue = self._queues.get(job.unit_id)
            start_drain = queue is None
            if start_drain:
                queue = deque()
                self._queues[job.unit_id] = queue
            queue.append(job)

            if start_drain:
                self._executor.submit(self._drain, job.unit_id)

        logger.debug(f"Queued {job.kind} job {job.job_id} for unit {job.unit_id}")
        return job.future

    def _drain(self, unit_id: str) -> None:
        """Run a unit's queued jobs one at a time, in submission order."""
        while True:
            with self._lock:
                queue = self._queues[unit_id]
                if not queue:
                    del self._queues[unit_id]
                    return
                job = queue.popleft()

            if not job.future.set_running_or_notify_cancel():
                job.status = IngestionStatus.CANCELLED
                logger.debug(f"Skipping cancelled {job.kind} job {job.job_id} for unit {unit_id}")
                continue

            self._run(job)

    def _run(self, job: _Job) -> None:
        job.status = IngestionStatus.IN_PROGRESS

        with CorrelationContext(unit_id=job.unit_id, board_id=job.board_id, job_id=job.job_id):
            try:
                if job.kind == "index":
                    result = self.index_unit(job.unit_id, job.board_id, job.text)
                else:
                    result = self.delete_unit(job.unit_id)
            except RagError as e:
                job.status = IngestionStatus.FAILED
                log_with_context(
                    logger,
                    logging.ERROR,
                    f"{job.kind.capitalize()} job failed: {e.message}",
                    **e.context(),
                )
                self._notify_failed(job.unit_id, e.reason())
                job.future.set_exception(e)
                return
            except Exception as e:
                job.status = IngestionStatus.FAILED
                logger.exception(f"Unexpected error in {job.kind} job for unit {job.unit_id}")
                self._notify_failed(job.unit_id, f"{type(e).__name__}: {e}")
                job.future.set_exception(e)
                return

            job.status = IngestionStatus.COMPLETED
            self._notify_complete(job.unit_id)
            job.future.set_result(result)

    def _notify_complete(self, unit_id: str) -> None:
        try:
            self.listener.on_ingestion_complete(unit_id)
        except Exception:
            logger.exception(f"Status listener failed on completion of unit {unit_id}")

    def _notify_failed(self, unit_id: str, reason: str) -> None:
        try:
            self.listener.on_ingestion_failed(unit_id, reason)
        except Exception:
            logger.exception(f"Status listener failed on failure of unit {unit_id}")

    def pending_count(self) -> int:
        """Number of queued jobs not yet started."""
        with self._lock:
            return sum(len(queue) for queue in self._queues.values())

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        """
        Stop accepting jobs and release the worker pool.

        Args:
            wait: Block until running and queued jobs finish
            cancel_pending: Cancel jobs that have not started yet
        """
        with self._lock:
            self._closed = True
            cancelled = 0
            if cancel_pending:
                for queue in self._queues.values():
                    for job in queue:
                        if job.future.cancel():
                            job.status = IngestionStatus.CANCELLED
                            cancelled += 1

        if cancelled:
            logger.info(f"Cancelled {cancelled} pending ingestion jobs")

        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "IngestionPipeline":
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()
