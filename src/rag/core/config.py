"""
Configuration loader for the board retrieval pipeline.

Settings come from an optional YAML file, then a `.env` file, then
environment variables (highest precedence).
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from ..contracts.retrieval_contracts import ChunkingPolicy
from .exceptions import InvalidInputError, RagConfigError
from .types import AnswerConfig, LLMConfig, PipelineConfig


logger = logging.getLogger(__name__)


SUPPORTED_PROVIDERS = ("ollama", "gemini")
SUPPORTED_BACKENDS = ("memory", "sqlserver")

DEFAULT_BASE_URLS = {
    "ollama": "http://localhost:11434",
    "gemini": "https://generativelanguage.googleapis.com/v1beta",
}

DEFAULT_MODELS = {
    ("ollama", "embedding"): "nomic-embed-text",
    ("ollama", "generation"): "llama3.2",
    ("gemini", "embedding"): "text-embedding-004",
    ("gemini", "generation"): "gemini-1.5-flash",
}

# (env var, dotted config key, converter)
ENV_OVERRIDES = (
    ("RAG_EMBED_PROVIDER", "embedding.provider", str),
    ("RAG_EMBED_MODEL", "embedding.model", str),
    ("OLLAMA_EMBED_MODEL", "embedding.model", str),
    ("RAG_EMBED_DIMENSIONS", "embedding.dimensions", int),
    ("RAG_EMBED_TIMEOUT", "embedding.timeout_seconds", int),
    ("RAG_CHAT_PROVIDER", "generation.provider", str),
    ("RAG_CHAT_MODEL", "generation.model", str),
    ("OLLAMA_CHAT_MODEL", "generation.model", str),
    ("RAG_CHAT_TIMEOUT", "generation.timeout_seconds", int),
    ("RAG_CHUNK_SIZE", "chunking.chunk_size", int),
    ("RAG_CHUNK_OVERLAP", "chunking.overlap", int),
    ("RAG_STORE_BACKEND", "store.backend", str),
    ("RAG_SQLSERVER_CONN_STR", "store.sqlserver.connection_string", str),
    ("RAG_SQLSERVER_HOST", "store.sqlserver.host", str),
    ("RAG_SQLSERVER_PORT", "store.sqlserver.port", int),
    ("RAG_SQLSERVER_DATABASE", "store.sqlserver.database", str),
    ("RAG_SQLSERVER_USER", "store.sqlserver.username", str),
    ("RAG_SQLSERVER_PASSWORD", "store.sqlserver.password", str),
    ("RAG_SQLSERVER_SCHEMA", "store.sqlserver.schema", str),
    ("RAG_MAX_WORKERS", "pipeline.max_workers", int),
    ("RAG_EMBED_CONCURRENCY", "pipeline.embed_concurrency", int),
    ("RAG_TOP_K", "answer.top_k", int),
    ("RAG_MAX_CONTEXT_CHARS", "answer.max_context_chars", int),
)


def _default_config() -> Dict[str, Any]:
    """Return default configuration."""
    return {
        "embedding": {
            "provider": "ollama",
            "model": None,
            "base_url": None,
            "dimensions": 768,
            "timeout_seconds": 60,
        },
        "generation": {
            "provider": "ollama",
            "model": None,
            "base_url": None,
            "temperature": 0.2,
            "max_tokens": None,
            "timeout_seconds": 120,
        },
        "chunking": {
            "chunk_size": 500,
            "overlap": 50,
            "max_chunks_per_unit": None,
        },
        "store": {
            "backend": "memory",
            "sqlserver": {
                "host": "localhost",
                "port": 1433,
                "database": "NeuroBoard",
                "username": "sa",
                "driver": "ODBC Driver 18 for SQL Server",
                "schema": "rag",
            },
        },
        "pipeline": {
            "max_workers": 4,
            "embed_concurrency": 1,
        },
        "answer": {
            "top_k": 10,
            "max_context_chars": 8000,
            "summary_max_units": 20,
            "summary_chars_per_unit": 200,
        },
    }


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge `override` into a copy of `base`, recursing into nested dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class RagConfig:
    """
    Configuration for the retrieval pipeline.

    Loads a YAML configuration file over built-in defaults, then applies
    `.env` and environment variable overrides, then validates.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        env_file: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)
            env_file: Path to a .env file (defaults to ./.env when present)
            overrides: Dict merged over the file contents (tests, embedding apps)
        """
        self.config_path = Path(config_path) if config_path else None
        self.config = _default_config()

        if self.config_path:
            self.config = _deep_merge(self.config, self._load_config())
        if overrides:
            self.config = _deep_merge(self.config, overrides)

        self._load_env_file(env_file)
        self._apply_env_overrides()
        self._validate()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise RagConfigError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            try:
                config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise RagConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if config is not None and not isinstance(config, dict):
            raise RagConfigError(f"Config root must be a mapping: {self.config_path}")

        return config or {}

    def _load_env_file(self, env_file: Optional[Path]) -> None:
        """Load a .env file into the process env; shell variables take precedence."""
        path = Path(env_file) if env_file else Path.cwd() / ".env"
        if path.exists():
            load_dotenv(dotenv_path=path, override=False)
            logger.debug(f"Loaded environment from {path}")

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        for env_var, key, converter in ENV_OVERRIDES:
            raw = os.environ.get(env_var)
            if raw is None or raw.strip() == "":
                continue
            try:
                value = converter(raw.strip())
            except ValueError as e:
                raise RagConfigError(f"Environment variable {env_var} is invalid: {raw}") from e
            self._set(key, value)

        api_key = os.environ.get("GEMINI_API_KEY")
        if api_key:
            for section in ("embedding", "generation"):
                self.config[section].setdefault("api_key", None)
                if not self.config[section]["api_key"]:
                    self.config[section]["api_key"] = api_key

        ollama_url = os.environ.get("OLLAMA_BASE_URL")
        if ollama_url:
            for section in ("embedding", "generation"):
                if self.config[section].get("provider") == "ollama":
                    self.config[section]["base_url"] = ollama_url

    def _set(self, key: str, value: Any) -> None:
        node = self.config
        parts = key.split(".")
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value

    def _validate(self) -> None:
        """Fail fast on values the pipeline cannot run with."""
        for section in ("embedding", "generation"):
            provider = self.get(f"{section}.provider")
            if provider not in SUPPORTED_PROVIDERS:
                raise RagConfigError(
                    f"Unknown {section} provider: {provider}. "
                    f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
                )

        backend = self.get("store.backend")
        if backend not in SUPPORTED_BACKENDS:
            raise RagConfigError(
                f"Unknown store backend: {backend}. "
                f"Supported backends: {', '.join(SUPPORTED_BACKENDS)}"
            )

        if int(self.get("embedding.dimensions", 0)) <= 0:
            raise RagConfigError("embedding.dimensions must be positive")

        try:
            self.get_chunking_policy()
        except InvalidInputError as e:
            raise RagConfigError(f"Invalid chunking config: {e}") from e

        answer = self.get_answer_config()
        if answer.top_k <= 0:
            raise RagConfigError("answer.top_k must be positive")

        if answer.max_context_chars <= 0:
            raise RagConfigError("answer.max_context_chars must be positive")

        if answer.max_context_chars < answer.top_k:
            raise RagConfigError("answer.max_context_chars must be at least answer.top_k")

    def _llm_config(self, section: str) -> LLMConfig:
        data = self.config.get(section, {})
        provider = data.get("provider", "ollama")
        return LLMConfig(
            provider=provider,
            model=data.get("model") or DEFAULT_MODELS[(provider, section)],
            base_url=data.get("base_url") or DEFAULT_BASE_URLS[provider],
            api_key=data.get("api_key"),
            temperature=data.get("temperature", 0.2),
            max_tokens=data.get("max_tokens"),
            timeout_seconds=data.get("timeout_seconds", 60),
            extra_params=data.get("extra_params", {}) or {},
        )

    def get_embedding_config(self) -> LLMConfig:
        """Get the embedding provider configuration."""
        return self._llm_config("embedding")

    def get_generation_config(self) -> LLMConfig:
        """Get the text-generation provider configuration."""
        return self._llm_config("generation")

    def get_chunking_policy(self) -> ChunkingPolicy:
        """Get the chunking policy."""
        return ChunkingPolicy.from_dict(self.config.get("chunking", {}))

    def get_store_config(self) -> Dict[str, Any]:
        """Get vector store configuration."""
        return self.config.get("store", {})

    def get_pipeline_config(self) -> PipelineConfig:
        """Get ingestion pipeline configuration."""
        data = self.config.get("pipeline", {})
        return PipelineConfig(
            max_workers=data.get("max_workers", 4),
            embed_concurrency=data.get("embed_concurrency", 1),
            dimensions=int(self.get("embedding.dimensions", 768)),
        )

    def get_answer_config(self) -> AnswerConfig:
        """Get RAG answerer configuration."""
        data = self.config.get("answer", {})
        return AnswerConfig(
            top_k=data.get("top_k", 10),
            max_context_chars=data.get("max_context_chars", 8000),
            summary_max_units=data.get("summary_max_units", 20),
            summary_chars_per_unit=data.get("summary_chars_per_unit", 200),
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default
