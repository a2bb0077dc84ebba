"""
Embedding Client - Turn texts into dimension-checked vectors.

Wraps an EmbeddingProvider and enforces the configured dimensionality on
every vector it returns. Batch embedding treats items independently and
reports partial progress on failure.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional

from ..core.exceptions import (
    DimensionMismatchError,
    EmbeddingBatchError,
    InvalidInputError,
    ProviderError,
    ProviderUnavailableError,
)
from ..core.types import PipelineStage
from ..providers.base import EmbeddingProvider

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """
    Dimension-checked embedding over a provider.

    No retries and no caching across calls: a provider failure surfaces to
    the caller, who decides whether to try again.

    Example:
        >>> client = EmbeddingClient(OllamaClient(config), dimensions=768)
        >>> vector = client.embed("What does the fox do?")
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        dimensions: int,
        max_workers: int = 1,
    ):
        """
        Initialize the embedding client.

        Args:
            provider: Embedding provider
            dimensions: Expected vector length
            max_workers: Parallel provider calls in embed_batch (1 = sequential)
        """
        if dimensions <= 0:
            raise InvalidInputError("dimensions must be positive")
        if max_workers < 1:
            raise InvalidInputError("max_workers must be at least 1")

        self.provider = provider
        self.dimensions = dimensions
        self.max_workers = max_workers

    def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            DimensionMismatchError: If the provider returns a vector of the wrong length
            ProviderUnavailableError: If the provider fails
            ProviderTimeoutError: If the provider call times out
        """
        try:
            response = self.provider.embed([text])
        except ProviderError as e:
            if e.stage is None:
                e.stage = PipelineStage.EMBED
            raise

        if len(response.embeddings) != 1:
            raise ProviderUnavailableError(
                f"Expected 1 embedding, got {len(response.embeddings)}",
                provider=self.provider.name,
                stage=PipelineStage.EMBED,
            )

        vector = list(response.embeddings[0])
        if len(vector) != self.dimensions:
            raise DimensionMismatchError(
                expected=self.dimensions,
                actual=len(vector),
                stage=PipelineStage.EMBED,
            )
        return vector

    def embed_batch(self, texts: List[str], fail_fast: bool = False) -> List[List[float]]:
        """
        Embed texts, returning vectors in input order.

        Identical texts are embedded once. Items are independent: one failing
        text does not discard the others' vectors.

        Args:
            texts: Texts to embed
            fail_fast: Stop scheduling further items after the first failure

        Returns:
            One vector per input text, same order and length as `texts`

        Raises:
            EmbeddingBatchError: If any item failed; carries the completed vectors
            DimensionMismatchError: If any vector has the wrong length (fatal, not per-item)
        """
        if not texts:
            return []

        positions: Dict[str, List[int]] = {}
        for i, text in enumerate(texts):
            positions.setdefault(text, []).append(i)
        unique_texts = list(positions)

        if len(unique_texts) < len(texts):
            logger.debug(
                f"Embedding {len(unique_texts)} unique texts for a batch of {len(texts)}"
            )

        if self.max_workers > 1 and len(unique_texts) > 1:
            vectors, errors = self._embed_pooled(unique_texts, fail_fast)
        else:
            vectors, errors = self._embed_sequential(unique_texts, fail_fast)

        completed: List[Optional[List[float]]] = [None] * len(texts)
        for text, vector in vectors.items():
            for i in positions[text]:
                completed[i] = vector

        if not errors and all(vector is not None for vector in completed):
            return completed

        failures: Dict[int, str] = {}
        for text in unique_texts:
            if text in vectors:
                continue
            reason = errors.get(text, "skipped after an earlier failure")
            for i in positions[text]:
                failures[i] = reason

        done = len(texts) - len(failures)
        raise EmbeddingBatchError(
            f"Embedded {done} of {len(texts)} texts; {len(failures)} failed",
            completed=completed,
            failures=failures,
            provider=self.provider.name,
            stage=PipelineStage.EMBED,
        )

    def _embed_sequential(self, texts: List[str], fail_fast: bool):
        vectors: Dict[str, List[float]] = {}
        errors: Dict[str, str] = {}

        for text in texts:
            try:
                vectors[text] = self.embed(text)
            except ProviderError as e:
                logger.warning(f"Embedding failed: {e.reason()}")
                errors[text] = e.reason()
                if fail_fast:
                    break

        return vectors, errors

    def _embed_pooled(self, texts: List[str], fail_fast: bool):
        vectors: Dict[str, List[float]] = {}
        errors: Dict[str, str] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(self.embed, text): text for text in texts}
            try:
                for future in as_completed(futures):
                    text = futures[future]
                    if future.cancelled():
                        continue
                    try:
                        vectors[text] = future.result()
                    except ProviderError as e:
                        logger.warning(f"Embedding failed: {e.reason()}")
                        errors[text] = e.reason()
                        if fail_fast:
                            for pending in futures:
                                pending.cancel()
            except DimensionMismatchError:
                for pending in futures:
                    pending.cancel()
                raise

        return vectors, errors
