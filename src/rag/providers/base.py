"""
Provider interfaces for embedding and text generation.

The pipeline talks to models only through these two abstractions; concrete
clients (Ollama, Gemini) and test fakes implement them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class EmbeddingResponse:
    """
    Response from an embeddings API.

    Attributes:
        success: Whether the request succeeded
        embeddings: One vector per input text, in input order
        model: Model that generated the embeddings
        raw_response: Full response JSON
        total_duration: Total time in nanoseconds (Ollama only)
    """
    success: bool
    embeddings: List[List[float]] = field(default_factory=list)
    model: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None
    total_duration: Optional[int] = None


@dataclass
class GenerationResponse:
    """
    Response from a text-generation API.

    Attributes:
        success: Whether the request succeeded
        content: The generated text content
        model: Model that generated the response
        raw_response: Full response JSON
        prompt_tokens: Number of prompt tokens (if available)
        completion_tokens: Number of completion tokens (if available)
        total_tokens: Total tokens used (if available)
    """
    success: bool
    content: Optional[str] = None
    model: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class EmbeddingProvider(ABC):
    """
    Maps texts to fixed-dimension vectors.

    Implementations raise ProviderUnavailableError or ProviderTimeoutError;
    they never retry.
    """

    name: str = "unknown"

    @abstractmethod
    def embed(self, texts: List[str]) -> EmbeddingResponse:
        """Embed `texts`, returning one vector per input in the same order."""
        pass

    def close(self) -> None:
        """Release any held connections."""
        pass


class TextGenerator(ABC):
    """Produces an answer string from a prompt."""

    name: str = "unknown"

    @abstractmethod
    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> GenerationResponse:
        """Generate a completion for `prompt`."""
        pass

    def close(self) -> None:
        """Release any held connections."""
        pass
