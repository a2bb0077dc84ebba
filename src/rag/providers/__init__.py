"""
Embedding and text-generation providers.
"""

from typing import Union

from ..core.exceptions import RagConfigError
from ..core.types import LLMConfig
from .base import EmbeddingProvider, EmbeddingResponse, GenerationResponse, TextGenerator
from .gemini_client import GeminiClient
from .ollama_client import OllamaClient


def create_provider(config: LLMConfig) -> Union[OllamaClient, GeminiClient]:
    """
    Build the provider client named by `config.provider`.

    Raises:
        RagConfigError: For an unknown provider name
    """
    if config.provider == "ollama":
        return OllamaClient(config)
    if config.provider == "gemini":
        return GeminiClient(config)
    raise RagConfigError(f"Unknown provider: {config.provider}")


__all__ = [
    "EmbeddingProvider",
    "EmbeddingResponse",
    "GeminiClient",
    "GenerationResponse",
    "OllamaClient",
    "TextGenerator",
    "create_provider",
]
