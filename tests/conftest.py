"""
Shared test fixtures and configuration for pytest.
"""

import logging
import os
import re
import sys
import threading
import uuid
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rag.core.config import ENV_OVERRIDES  # noqa: E402
from rag.core.exceptions import ProviderUnavailableError  # noqa: E402
from rag.core.types import AnswerConfig  # noqa: E402
from rag.providers.base import (  # noqa: E402
    EmbeddingProvider,
    EmbeddingResponse,
    GenerationResponse,
    TextGenerator,
)
from rag.retrieval.answerer import BoardAnswerer  # noqa: E402
from rag.retrieval.chunker import Chunker  # noqa: E402
from rag.retrieval.embedder import EmbeddingClient  # noqa: E402
from rag.retrieval.indexer import IngestionPipeline, IngestionStatusListener  # noqa: E402
from rag.retrieval.search import Retriever  # noqa: E402
from vector.store import InMemoryVectorStore  # noqa: E402


logger = logging.getLogger(__name__)


TEST_DIMENSIONS = 64


# ============================================================================
# Environment detection
# ============================================================================

def sqlserver_password() -> Optional[str]:
    return os.environ.get("RAG_SQLSERVER_PASSWORD") or os.environ.get("MSSQL_SA_PASSWORD")


def is_sqlserver_available() -> bool:
    """Check if SQL Server is available for testing."""
    password = sqlserver_password()
    if not password:
        return False

    try:
        import pyodbc

        config = _sqlserver_settings()
        conn_str = (
            f"Driver={{{config['driver']}}};"
            f"Server={config['host']},{config['port']};"
            f"Database={config['database']};"
            f"UID={config['username']};"
            f"PWD={password};"
            f"TrustServerCertificate=yes"
        )

        conn = pyodbc.connect(conn_str, timeout=5)
        conn.close()
        return True

    except Exception as e:
        logger.debug(f"SQL Server not available: {e}")
        return False


def _sqlserver_settings() -> Dict:
    return {
        "host": os.environ.get("RAG_SQLSERVER_HOST", "localhost"),
        "port": int(os.environ.get("RAG_SQLSERVER_PORT", "1433")),
        "database": os.environ.get("RAG_SQLSERVER_DATABASE",
                                   os.environ.get("MSSQL_DATABASE", "NeuroBoard")),
        "username": os.environ.get("RAG_SQLSERVER_USER", "sa"),
        "password": sqlserver_password(),
        "driver": os.environ.get("RAG_SQLSERVER_DRIVER", "ODBC Driver 18 for SQL Server"),
    }


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (requires SQL Server)")
    config.addinivalue_line("markers", "e2e: End-to-end tests over the in-memory stack")
    config.addinivalue_line("markers", "slow: Tests that take a long time to run")


def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests if SQL Server is not available."""
    if not any("integration" in item.keywords for item in items):
        return
    if is_sqlserver_available():
        return

    skip_sqlserver = pytest.mark.skip(
        reason="SQL Server not available (set RAG_SQLSERVER_PASSWORD and ensure SQL Server is running)"
    )

    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_sqlserver)


# ============================================================================
# Fake providers
# ============================================================================

class FakeEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic bag-of-words embedder.

    Each distinct lowercase word gets its own dimension (first come, first
    served), so texts sharing words point in similar directions and texts
    with no words in common are orthogonal.
    """

    name = "fake"

    def __init__(self, dimensions: int = TEST_DIMENSIONS, fail_on: Optional[List[str]] = None):
        self.dimensions = dimensions
        self.fail_on = list(fail_on or [])
        self.vocabulary: Dict[str, int] = {}
        self.calls: List[List[str]] = []
        self.closed = False
        self._lock = threading.Lock()

    def vectorize(self, text: str) -> List[float]:
        vector = [0.0] * self.dimensions
        with self._lock:
            for word in re.findall(r"[a-z0-9]+", text.lower()):
                if word not in self.vocabulary:
                    self.vocabulary[word] = len(self.vocabulary) % self.dimensions
                vector[self.vocabulary[word]] += 1.0
        return vector

    def embed(self, texts: List[str]) -> EmbeddingResponse:
        with self._lock:
            self.calls.append(list(texts))

        for text in texts:
            if any(marker in text for marker in self.fail_on):
                raise ProviderUnavailableError("fake provider unavailable", provider=self.name)

        return EmbeddingResponse(
            success=True,
            embeddings=[self.vectorize(text) for text in texts],
            model="fake-embed",
        )

    def close(self) -> None:
        self.closed = True


class ScriptedGenerator(TextGenerator):
    """Returns queued answers and records every prompt it receives."""

    name = "scripted"

    def __init__(self, responses: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.responses = list(responses or [])
        self.error = error
        self.prompts: List[Dict[str, Optional[str]]] = []
        self.closed = False

    def generate(self, prompt: str, system_prompt: Optional[str] = None) -> GenerationResponse:
        self.prompts.append({"prompt": prompt, "system_prompt": system_prompt})
        if self.error is not None:
            raise self.error
        content = self.responses.pop(0) if self.responses else "scripted answer"
        return GenerationResponse(success=True, content=content, model="scripted")

    def close(self) -> None:
        self.closed = True


class RecordingListener(IngestionStatusListener):
    """Collects ingestion outcomes."""

    def __init__(self):
        self.completed: List[str] = []
        self.failed: List[tuple] = []
        self._lock = threading.Lock()

    def on_ingestion_complete(self, unit_id: str) -> None:
        with self._lock:
            self.completed.append(unit_id)

    def on_ingestion_failed(self, unit_id: str, reason: str) -> None:
        with self._lock:
            self.failed.append((unit_id, reason))


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def provider_factory():
    """The fake embedding provider class, for tests that need custom instances."""
    return FakeEmbeddingProvider


@pytest.fixture
def generator_factory():
    """The scripted generator class, for tests that need custom instances."""
    return ScriptedGenerator


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore(dimensions=TEST_DIMENSIONS)


@pytest.fixture
def embedder(fake_provider) -> EmbeddingClient:
    return EmbeddingClient(fake_provider, dimensions=TEST_DIMENSIONS)


@pytest.fixture
def retriever(embedder, memory_store) -> Retriever:
    return Retriever(embedder, memory_store)


@pytest.fixture
def answerer(retriever, generator) -> BoardAnswerer:
    return BoardAnswerer(retriever, generator, AnswerConfig(top_k=10, max_context_chars=8000))


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def pipeline(embedder, memory_store, listener):
    pipeline = IngestionPipeline(
        Chunker(),
        embedder,
        memory_store,
        listener=listener,
        max_workers=4,
    )
    yield pipeline
    pipeline.shutdown(wait=True)


@pytest.fixture
def clean_rag_env(monkeypatch, tmp_path):
    """Remove every variable RagConfig reads; returns a .env path that does not exist."""
    for env_var, _, _ in ENV_OVERRIDES:
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("OLLAMA_BASE_URL", raising=False)
    return tmp_path / "missing.env"


@pytest.fixture(scope="session")
def sqlserver_config() -> dict:
    """Session-scoped fixture providing SQL Server connection configuration."""
    return _sqlserver_settings()


@pytest.fixture(scope="function")
def test_schema_name() -> str:
    """Fixture providing a unique test schema name."""
    return f"test_{uuid.uuid4().hex[:8]}"
