"""
Gemini provider client.

Calls the Gemini REST API through a `requests` session for embeddings
(batchEmbedContents, text-embedding-004 with 768 dimensions) and text
generation (generateContent).
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..core.exceptions import (
    ProviderTimeoutError,
    ProviderUnavailableError,
    RagConfigError,
)
from ..core.types import LLMConfig
from .base import EmbeddingProvider, EmbeddingResponse, GenerationResponse, TextGenerator


logger = logging.getLogger(__name__)


class GeminiClient(EmbeddingProvider, TextGenerator):
    """
    HTTP client for the Gemini provider.

    Example:
        >>> config = LLMConfig(provider="gemini", model="text-embedding-004",
        ...                    base_url="https://generativelanguage.googleapis.com/v1beta",
        ...                    api_key="...")
        >>> with GeminiClient(config) as client:
        ...     vectors = client.embed(["hello"]).embeddings
    """

    name = "gemini"

    def __init__(self, config: LLMConfig, session: Optional[requests.Session] = None):
        """
        Initialize the Gemini client.

        Args:
            config: Provider configuration; api_key is required
            session: Optional pre-built session (tests, connection sharing)
        """
        if not config.api_key:
            raise RagConfigError("Gemini provider requires an API key (GEMINI_API_KEY)")

        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.model = config.model
        self.timeout = config.timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "x-goog-api-key": config.api_key,
        })

        logger.debug(
            f"Initialized GeminiClient: base_url={self.base_url}, "
            f"model={self.model}, timeout={self.timeout}s"
        )

    def __enter__(self) -> "GeminiClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def embed(self, texts: List[str]) -> EmbeddingResponse:
        """
        Embed texts with the batchEmbedContents endpoint.

        Returns:
            EmbeddingResponse with one vector per input text

        Raises:
            ProviderUnavailableError: If the request fails or the response
                does not hold one vector per input
            ProviderTimeoutError: If the request exceeds the timeout
        """
        model_path = f"models/{self.model}"
        payload = {
            "requests": [
                {"model": model_path, "content": {"parts": [{"text": text}]}}
                for text in texts
            ]
        }

        result = self._post(f"{model_path}:batchEmbedContents", payload)
        items = result.get("embeddings")

        if not isinstance(items, list) or len(items) != len(texts):
            count = len(items) if isinstance(items, list) else 0
            raise ProviderUnavailableError(
                f"Gemini returned {count} embeddings for {len(texts)} inputs",
                provider=self.name,
            )

        return EmbeddingResponse(
            success=True,
            embeddings=[item.get("values", []) for item in items],
            model=self.model,
            raw_response=result,
        )

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> GenerationResponse:
        """
        Generate a completion with the generateContent endpoint.

        Raises:
            ProviderUnavailableError: If the request fails or no candidate text is returned
            ProviderTimeoutError: If the request exceeds the timeout
        """
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }

        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        generation_config = {}
        if self.config.temperature is not None:
            generation_config["temperature"] = self.config.temperature
        if self.config.max_tokens is not None:
            generation_config["maxOutputTokens"] = self.config.max_tokens
        if generation_config:
            payload["generationConfig"] = generation_config

        result = self._post(f"models/{self.model}:generateContent", payload)

        candidates = result.get("candidates") or []
        parts = (candidates[0].get("content") or {}).get("parts", []) if candidates else []
        text = "".join(part.get("text", "") for part in parts)
        if not candidates or not text:
            raise ProviderUnavailableError(
                "Gemini response contained no candidate text",
                provider=self.name,
            )

        usage = result.get("usageMetadata", {})
        return GenerationResponse(
            success=True,
            content=text,
            model=result.get("modelVersion", self.model),
            raw_response=result,
            prompt_tokens=usage.get("promptTokenCount"),
            completion_tokens=usage.get("candidatesTokenCount"),
            total_tokens=usage.get("totalTokenCount"),
        )

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"
        logger.debug(f"Making request to {url}")

        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error(f"Gemini request timed out after {self.timeout}s: {url}")
            raise ProviderTimeoutError(
                f"Gemini request timed out after {self.timeout}s",
                provider=self.name,
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to connect to Gemini: {e}")
            raise ProviderUnavailableError(
                f"Failed to connect to Gemini at {self.base_url}: {e}",
                provider=self.name,
            ) from e

        if response.status_code >= 400:
            logger.error(f"HTTP error from Gemini: {response.status_code} - {response.text}")
            raise ProviderUnavailableError(
                f"Gemini API error: {response.status_code} - {response.text}",
                provider=self.name,
                status_code=response.status_code,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise ProviderUnavailableError(
                f"Invalid JSON response from Gemini: {e}",
                provider=self.name,
            ) from e

        if not isinstance(result, dict):
            raise ProviderUnavailableError(
                "Unexpected response shape from Gemini",
                provider=self.name,
            )
        return result

    def close(self) -> None:
        """Close the session."""
        if self.session:
            self.session.close()
