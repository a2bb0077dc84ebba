"""
Unit tests for retrieval contracts and error types.
"""

import pytest

from rag.contracts.retrieval_contracts import (
    ChatAnswer,
    ChatRequest,
    ChunkingPolicy,
    IngestionResult,
    SourceRef,
)
from rag.core.exceptions import (
    DimensionMismatchError,
    InvalidInputError,
    ProviderUnavailableError,
    RagConfigError,
)
from rag.core.types import PipelineStage
from rag.core.utils import compute_content_hash, merge_unique, preview


class TestChunkingPolicy:
    """Tests for ChunkingPolicy."""

    def test_round_trip(self):
        policy = ChunkingPolicy(chunk_size=300, overlap=30, max_chunks_per_unit=5)

        assert ChunkingPolicy.from_dict(policy.to_dict()) == policy

    def test_from_partial_dict(self):
        policy = ChunkingPolicy.from_dict({"chunk_size": 100})

        assert policy.overlap == 50
        assert policy.version == "1.0"


class TestChatContracts:
    """Tests for chat request and answer models."""

    def test_request_from_payload(self):
        request = ChatRequest.from_dict({
            "board_id": "B1",
            "query": "fox?",
            "options": {"unit_ids": ["U1"], "group_ids": ["G1"]},
        })

        assert request.unit_ids == ["U1"]
        assert request.group_ids == ["G1"]

    def test_request_without_options(self):
        request = ChatRequest.from_dict({"board_id": "B1", "query": "fox?"})

        assert request.unit_ids is None
        assert request.group_ids is None

    def test_answer_to_dict(self):
        answer = ChatAnswer(
            answer="It jumps.",
            sources=[SourceRef(unit_id="U1", chunk_index=1, relevance=0.55)],
        )

        assert answer.to_dict() == {
            "answer": "It jumps.",
            "sources": [{"unit_id": "U1", "chunk_index": 1, "relevance": 0.55}],
            "context_truncated": False,
        }

    def test_source_ref_from_dict(self):
        data = {"unit_id": "U1", "chunk_index": 0, "relevance": 0.4}

        assert SourceRef.from_dict(data).to_dict() == data

    def test_ingestion_result_to_dict(self):
        result = IngestionResult("U1", "B1", 2, "abc", duration_ms=5)

        assert result.to_dict()["chunk_count"] == 2


class TestErrors:
    """Tests for error context and reasons."""

    def test_reason_includes_stage(self):
        error = ProviderUnavailableError("down", provider="ollama", stage=PipelineStage.EMBED)

        assert error.reason() == "embed: down"

    def test_reason_without_stage(self):
        assert InvalidInputError("bad").reason() == "bad"

    def test_context_drops_empty_fields(self):
        error = ProviderUnavailableError(
            "down",
            provider="gemini",
            status_code=503,
            unit_id="U1",
            stage=PipelineStage.EMBED,
        )

        assert error.context() == {
            "error_type": "ProviderUnavailableError",
            "unit_id": "U1",
            "stage": "embed",
            "provider": "gemini",
            "status_code": 503,
        }

    def test_dimension_mismatch_is_config_error(self):
        error = DimensionMismatchError(expected=768, actual=384)

        assert isinstance(error, RagConfigError)
        assert "expected 768, got 384" in str(error)


class TestUtils:
    """Tests for core utilities."""

    def test_content_hash(self):
        assert compute_content_hash("Hello, World!") == (
            "dffd6021bb2bd5b0af676290809ec3a53191dd81c7f70a4b28688a362182986f"
        )

    def test_merge_unique(self):
        assert merge_unique(["U1", "U2"], ["U2", "U3", "U1"]) == ["U1", "U2", "U3"]

    def test_merge_unique_no_filters(self):
        assert merge_unique(None, None) is None

    def test_merge_unique_empty_filter(self):
        assert merge_unique([], None) == []

    @pytest.mark.parametrize("text,expected", [
        ("short", "short"),
        ("x" * 60, "x" * 50 + "..."),
    ])
    def test_preview(self, text, expected):
        assert preview(text) == expected
