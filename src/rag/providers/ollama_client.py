"""
Ollama provider client.

Thin HTTP client for Ollama's REST API, used both as the embedding provider
(/api/embed) and the text generator (/api/generate, /api/chat).
"""

import json
import logging
import socket
from typing import Any, Dict, List, Optional
from urllib.request import Request, urlopen
from urllib.error import URLError, HTTPError

from ..core.exceptions import (
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from ..core.types import LLMConfig
from .base import EmbeddingProvider, EmbeddingResponse, GenerationResponse, TextGenerator


logger = logging.getLogger(__name__)


def _is_timeout(error: BaseException) -> bool:
    if isinstance(error, (socket.timeout, TimeoutError)):
        return True
    reason = getattr(error, "reason", None)
    return isinstance(reason, (socket.timeout, TimeoutError))


class OllamaClient(EmbeddingProvider, TextGenerator):
    """
    HTTP client for the Ollama provider.

    Every request carries the configured timeout; an expired timeout surfaces
    as ProviderTimeoutError, any other transport or API failure as
    ProviderUnavailableError.

    Example:
        >>> config = LLMConfig(provider="ollama", model="nomic-embed-text")
        >>> client = OllamaClient(config)
        >>> response = client.embed(["The quick brown fox."])
        >>> len(response.embeddings[0])
        768
    """

    name = "ollama"

    def __init__(self, config: LLMConfig):
        """
        Initialize the Ollama client.

        Args:
            config: Provider configuration (model, base_url, timeout_seconds)
        """
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.model = config.model
        self.timeout = config.timeout_seconds

        logger.debug(
            f"Initialized OllamaClient: base_url={self.base_url}, "
            f"model={self.model}, timeout={self.timeout}s"
        )

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> GenerationResponse:
        """
        Generate a response using the native /api/generate endpoint.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt
            **kwargs: Additional parameters passed to the API

        Returns:
            GenerationResponse with the generated content

        Raises:
            ProviderUnavailableError: If the request fails
            ProviderTimeoutError: If the request exceeds the timeout
        """
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
        }

        if system_prompt:
            payload["system"] = system_prompt

        self._add_options(payload)
        payload.update(kwargs)

        result = self._post("/api/generate", payload)
        return self._parse_generation(result, result.get("response"))

    def chat(self, messages: list, **kwargs) -> GenerationResponse:
        """
        Generate a response using the native /api/chat endpoint.

        Args:
            messages: List of message dicts with 'role' and 'content'
            **kwargs: Additional parameters passed to the API

        Returns:
            GenerationResponse with the assistant message content
        """
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
        }

        self._add_options(payload)
        payload.update(kwargs)

        result = self._post("/api/chat", payload)
        message = result.get("message") or {}
        return self._parse_generation(result, message.get("content"))

    def embed(self, texts: List[str]) -> EmbeddingResponse:
        """
        Generate embeddings using Ollama's /api/embed endpoint.

        Args:
            texts: List of texts to embed

        Returns:
            EmbeddingResponse with one vector per input text

        Raises:
            ProviderUnavailableError: If the request fails or the response
                does not hold one vector per input
            ProviderTimeoutError: If the request exceeds the timeout
        """
        payload = {
            "model": self.model,
            "input": list(texts),
        }

        result = self._post("/api/embed", payload)
        embeddings = result.get("embeddings")

        if not isinstance(embeddings, list) or len(embeddings) != len(texts):
            count = len(embeddings) if isinstance(embeddings, list) else 0
            raise ProviderUnavailableError(
                f"Ollama returned {count} embeddings for {len(texts)} inputs",
                provider=self.name,
            )

        return EmbeddingResponse(
            success=True,
            embeddings=embeddings,
            model=result.get("model", self.model),
            raw_response=result,
            total_duration=result.get("total_duration"),
        )

    def health_check(self) -> bool:
        """
        Check if Ollama is reachable and the model is available.

        Returns:
            True if Ollama is healthy, False otherwise
        """
        request = Request(f"{self.base_url}/api/tags", method="GET")
        try:
            with urlopen(request, timeout=10) as response:
                data = json.loads(response.read().decode("utf-8"))
        except (URLError, OSError, ValueError) as e:
            logger.warning(f"Health check failed: {e}")
            return False

        names = [m.get("name", "") for m in data.get("models", [])]
        if self.model in names or self.model.split(":")[0] in [n.split(":")[0] for n in names]:
            logger.debug(f"Health check passed: model {self.model} available")
            return True

        logger.warning(f"Model {self.model} not found. Available: {names}")
        return False

    def _add_options(self, payload: Dict[str, Any]) -> None:
        if self.config.temperature is not None:
            payload.setdefault("options", {})["temperature"] = self.config.temperature

        if self.config.max_tokens is not None:
            payload.setdefault("options", {})["num_predict"] = self.config.max_tokens

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a JSON payload to the Ollama API and decode the JSON reply.

        Raises:
            ProviderUnavailableError: On HTTP, connection or decoding errors
            ProviderTimeoutError: When the configured timeout expires
        """
        url = f"{self.base_url}{path}"
        data = json.dumps(payload).encode("utf-8")
        request = Request(
            url,
            data=data,
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        logger.debug(f"Making request to {url}")

        try:
            with urlopen(request, timeout=self.timeout) as response:
                result = json.loads(response.read().decode("utf-8"))
        except HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else str(e)
            logger.error(f"HTTP error from Ollama: {e.code} - {error_body}")
            raise ProviderUnavailableError(
                f"Ollama API error: {e.code} - {error_body}",
                provider=self.name,
                status_code=e.code,
            ) from e
        except URLError as e:
            if _is_timeout(e):
                raise self._timeout_error(url) from e
            logger.error(f"Failed to connect to Ollama: {e}")
            raise ProviderUnavailableError(
                f"Failed to connect to Ollama at {self.base_url}: {e}",
                provider=self.name,
            ) from e
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON response from Ollama: {e}")
            raise ProviderUnavailableError(
                f"Invalid JSON response from Ollama: {e}",
                provider=self.name,
            ) from e
        except OSError as e:
            if _is_timeout(e):
                raise self._timeout_error(url) from e
            raise ProviderUnavailableError(
                f"Connection error calling Ollama: {e}",
                provider=self.name,
            ) from e

        if not isinstance(result, dict):
            raise ProviderUnavailableError(
                "Unexpected response shape from Ollama",
                provider=self.name,
            )
        return result

    def _timeout_error(self, url: str) -> ProviderError:
        logger.error(f"Ollama request timed out after {self.timeout}s: {url}")
        return ProviderTimeoutError(
            f"Ollama request timed out after {self.timeout}s",
            provider=self.name,
        )

    @staticmethod
    def _parse_generation(result: Dict[str, Any], content: Optional[str]) -> GenerationResponse:
        if content is None:
            raise ProviderUnavailableError(
                "Ollama response contained no content",
                provider="ollama",
            )
        prompt_tokens = result.get("prompt_eval_count")
        completion_tokens = result.get("eval_count")
        return GenerationResponse(
            success=True,
            content=content,
            model=result.get("model"),
            raw_response=result,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=(prompt_tokens or 0) + (completion_tokens or 0),
        )
