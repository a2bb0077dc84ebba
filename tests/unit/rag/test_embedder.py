"""
Unit tests for the EmbeddingClient.

Tests for:
- Dimension enforcement
- Batch ordering and deduplication
- Partial batch failures and fail-fast
- Pooled embedding
"""

import pytest

from rag.core.exceptions import (
    DimensionMismatchError,
    EmbeddingBatchError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from rag.providers.base import EmbeddingProvider, EmbeddingResponse
from rag.retrieval.embedder import EmbeddingClient


class FixedLengthProvider(EmbeddingProvider):
    """Returns vectors of a fixed length regardless of configuration."""

    name = "fixed"

    def __init__(self, length):
        self.length = length

    def embed(self, texts):
        return EmbeddingResponse(success=True, embeddings=[[1.0] * self.length for _ in texts])


class TimingOutProvider(EmbeddingProvider):
    name = "slow"

    def embed(self, texts):
        raise ProviderTimeoutError("timed out after 1s", provider=self.name)


class TestEmbed:
    """Tests for single-text embedding."""

    def test_embed_returns_vector(self, fake_provider):
        client = EmbeddingClient(fake_provider, dimensions=64)

        vector = client.embed("the fox")

        assert len(vector) == 64
        assert sum(vector) == 2.0

    def test_dimension_mismatch_is_fatal(self):
        client = EmbeddingClient(FixedLengthProvider(3), dimensions=4)

        with pytest.raises(DimensionMismatchError) as exc_info:
            client.embed("anything")

        assert exc_info.value.expected == 4
        assert exc_info.value.actual == 3

    def test_provider_error_gets_embed_stage(self, provider_factory):
        client = EmbeddingClient(provider_factory(fail_on=["boom"]), dimensions=64)

        with pytest.raises(ProviderUnavailableError) as exc_info:
            client.embed("boom")

        assert str(exc_info.value.stage) == "embed"

    def test_timeout_propagates(self):
        client = EmbeddingClient(TimingOutProvider(), dimensions=8)

        with pytest.raises(ProviderTimeoutError):
            client.embed("anything")

    def test_invalid_construction(self, fake_provider):
        with pytest.raises(ValueError):
            EmbeddingClient(fake_provider, dimensions=0)

        with pytest.raises(ValueError):
            EmbeddingClient(fake_provider, dimensions=8, max_workers=0)


class TestEmbedBatch:
    """Tests for batch embedding."""

    def test_empty_batch(self, embedder, fake_provider):
        assert embedder.embed_batch([]) == []
        assert fake_provider.calls == []

    def test_order_and_length_preserved(self, embedder, fake_provider):
        texts = ["alpha", "beta", "gamma"]

        vectors = embedder.embed_batch(texts)

        assert len(vectors) == 3
        assert vectors == [fake_provider.vectorize(t) for t in texts]

    def test_duplicate_texts_embedded_once(self, embedder, fake_provider):
        vectors = embedder.embed_batch(["same", "other", "same"])

        assert len(fake_provider.calls) == 2
        assert vectors[0] == vectors[2]

    def test_partial_failure_keeps_completed(self, provider_factory):
        provider = provider_factory(fail_on=["bad"])
        client = EmbeddingClient(provider, dimensions=64)

        with pytest.raises(EmbeddingBatchError) as exc_info:
            client.embed_batch(["good one", "bad one", "good two"])

        error = exc_info.value
        assert error.completed[0] is not None
        assert error.completed[1] is None
        assert error.completed[2] is not None
        assert list(error.failures) == [1]
        assert error.completed_count == 2

    def test_fail_fast_stops_scheduling(self, provider_factory):
        provider = provider_factory(fail_on=["bad"])
        client = EmbeddingClient(provider, dimensions=64)

        with pytest.raises(EmbeddingBatchError) as exc_info:
            client.embed_batch(["first", "bad", "third"], fail_fast=True)

        error = exc_info.value
        assert len(provider.calls) == 2
        assert error.completed[0] is not None
        assert sorted(error.failures) == [1, 2]
        assert "skipped" in error.failures[2]

    def test_dimension_mismatch_not_wrapped(self):
        client = EmbeddingClient(FixedLengthProvider(5), dimensions=4)

        with pytest.raises(DimensionMismatchError):
            client.embed_batch(["a", "b"])

    def test_pooled_matches_sequential(self, provider_factory):
        texts = [f"text number {i}" for i in range(12)]
        sequential = EmbeddingClient(provider_factory(), dimensions=64)
        pooled = EmbeddingClient(provider_factory(), dimensions=64, max_workers=4)

        expected = sequential.embed_batch(texts)
        actual = pooled.embed_batch(texts)

        # Separate fake providers assign word dimensions independently
        assert [sum(v) for v in actual] == [sum(v) for v in expected]
        assert len(actual) == len(texts)

    def test_pooled_partial_failure(self, provider_factory):
        client = EmbeddingClient(provider_factory(fail_on=["bad"]), dimensions=64, max_workers=3)

        with pytest.raises(EmbeddingBatchError) as exc_info:
            client.embed_batch(["one", "bad", "three", "four"])

        error = exc_info.value
        assert error.completed[1] is None
        assert 1 in error.failures
        assert error.completed[0] is not None
