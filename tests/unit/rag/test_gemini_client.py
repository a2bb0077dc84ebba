"""
Unit tests for the Gemini client.
"""

from unittest.mock import MagicMock

import pytest
import requests

from rag.core.exceptions import ProviderTimeoutError, ProviderUnavailableError, RagConfigError
from rag.core.types import LLMConfig
from rag.providers import create_provider
from rag.providers.gemini_client import GeminiClient


BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


@pytest.fixture
def embed_config():
    return LLMConfig(
        provider="gemini",
        model="text-embedding-004",
        base_url=BASE_URL,
        api_key="test-key",
        timeout_seconds=15,
    )


@pytest.fixture
def session():
    session = MagicMock()
    session.headers = {}
    return session


def http_response(payload=None, status_code=200, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload
    return response


class TestGeminiClient:
    """Tests for GeminiClient."""

    def test_requires_api_key(self, embed_config):
        embed_config.api_key = None

        with pytest.raises(RagConfigError, match="API key"):
            GeminiClient(embed_config)

    def test_factory(self, embed_config):
        client = create_provider(embed_config)

        assert isinstance(client, GeminiClient)
        client.close()

    def test_session_headers(self, embed_config, session):
        GeminiClient(embed_config, session=session)

        assert session.headers["x-goog-api-key"] == "test-key"
        assert session.headers["Content-Type"] == "application/json"

    def test_embed(self, embed_config, session):
        session.post.return_value = http_response({
            "embeddings": [{"values": [0.1, 0.2]}, {"values": [0.3, 0.4]}],
        })
        client = GeminiClient(embed_config, session=session)

        response = client.embed(["first", "second"])

        assert response.embeddings == [[0.1, 0.2], [0.3, 0.4]]
        url = session.post.call_args[0][0]
        body = session.post.call_args[1]["json"]
        assert url == f"{BASE_URL}/models/text-embedding-004:batchEmbedContents"
        assert body["requests"][1] == {
            "model": "models/text-embedding-004",
            "content": {"parts": [{"text": "second"}]},
        }
        assert session.post.call_args[1]["timeout"] == 15

    def test_embed_count_mismatch(self, embed_config, session):
        session.post.return_value = http_response({"embeddings": []})
        client = GeminiClient(embed_config, session=session)

        with pytest.raises(ProviderUnavailableError, match="0 embeddings for 1 inputs"):
            client.embed(["only"])

    def test_generate(self, embed_config, session):
        embed_config.model = "gemini-1.5-flash"
        embed_config.max_tokens = 256
        session.post.return_value = http_response({
            "candidates": [{"content": {"parts": [{"text": "The fox "}, {"text": "jumps."}]}}],
            "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 3, "totalTokenCount": 15},
        })
        client = GeminiClient(embed_config, session=session)

        response = client.generate("What does the fox do?", system_prompt="Be brief.")

        assert response.content == "The fox jumps."
        assert response.total_tokens == 15
        body = session.post.call_args[1]["json"]
        assert body["contents"][0]["parts"][0]["text"] == "What does the fox do?"
        assert body["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
        assert body["generationConfig"]["maxOutputTokens"] == 256

    def test_generate_without_candidates(self, embed_config, session):
        session.post.return_value = http_response({"candidates": []})
        client = GeminiClient(embed_config, session=session)

        with pytest.raises(ProviderUnavailableError, match="no candidate text"):
            client.generate("hello")


class TestGeminiErrors:
    """Tests for error mapping."""

    def test_http_error(self, embed_config, session):
        session.post.return_value = http_response(status_code=429, text="quota exceeded")
        client = GeminiClient(embed_config, session=session)

        with pytest.raises(ProviderUnavailableError) as exc_info:
            client.embed(["a"])

        assert exc_info.value.status_code == 429
        assert exc_info.value.provider == "gemini"

    def test_timeout(self, embed_config, session):
        session.post.side_effect = requests.exceptions.ReadTimeout("read timed out")
        client = GeminiClient(embed_config, session=session)

        with pytest.raises(ProviderTimeoutError, match="15s"):
            client.embed(["a"])

    def test_connection_error(self, embed_config, session):
        session.post.side_effect = requests.exceptions.ConnectionError("refused")
        client = GeminiClient(embed_config, session=session)

        with pytest.raises(ProviderUnavailableError, match="Failed to connect"):
            client.generate("hello")

    def test_invalid_json(self, embed_config, session):
        response = http_response()
        response.json.side_effect = ValueError("no json")
        session.post.return_value = response
        client = GeminiClient(embed_config, session=session)

        with pytest.raises(ProviderUnavailableError, match="Invalid JSON"):
            client.embed(["a"])

    def test_close(self, embed_config, session):
        with GeminiClient(embed_config, session=session):
            pass

        session.close.assert_called_once()
