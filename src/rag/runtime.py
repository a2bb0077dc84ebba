"""
Runtime assembly for the board retrieval pipeline.

Builds providers, the vector store and the services from a RagConfig and
owns their lifecycle. There are no module-level clients: every component
is constructed here (or injected) and released by `close()`.
"""

import logging
from typing import Optional

from vector.store import VectorStore, create_vector_store

from .core.config import RagConfig
from .providers import create_provider
from .providers.base import EmbeddingProvider, TextGenerator
from .retrieval.answerer import BoardAnswerer
from .retrieval.chat import ChatService, GroupResolver
from .retrieval.chunker import Chunker
from .retrieval.embedder import EmbeddingClient
from .retrieval.indexer import IngestionPipeline, IngestionStatusListener
from .retrieval.search import Retriever


logger = logging.getLogger(__name__)


class RagRuntime:
    """
    Wired set of pipeline components.

    Example:
        >>> with RagRuntime.from_config(RagConfig("config/rag.yaml")) as runtime:
        ...     runtime.pipeline.on_unit_text_available("U1", "B", text).result()
        ...     answer = runtime.answerer.answer("What does the fox do?", "B")
    """

    def __init__(
        self,
        config: RagConfig,
        embedding_provider: EmbeddingProvider,
        generator: TextGenerator,
        store: VectorStore,
        listener: Optional[IngestionStatusListener] = None,
        group_resolver: Optional[GroupResolver] = None,
    ):
        self.config = config
        self.embedding_provider = embedding_provider
        self.generator = generator
        self.store = store

        pipeline_config = config.get_pipeline_config()

        self.chunker = Chunker(config.get_chunking_policy())
        self.embedder = EmbeddingClient(
            embedding_provider,
            dimensions=pipeline_config.dimensions,
            max_workers=pipeline_config.embed_concurrency,
        )
        self.retriever = Retriever(self.embedder, store)
        self.answerer = BoardAnswerer(self.retriever, generator, config.get_answer_config())
        self.chat_service = ChatService(self.answerer, group_resolver)
        self.pipeline = IngestionPipeline(
            self.chunker,
            self.embedder,
            store,
            listener=listener,
            max_workers=pipeline_config.max_workers,
        )

    @classmethod
    def from_config(
        cls,
        config: RagConfig,
        listener: Optional[IngestionStatusListener] = None,
        group_resolver: Optional[GroupResolver] = None,
    ) -> "RagRuntime":
        """Build providers and the store from configuration."""
        embedding_config = config.get_embedding_config()
        generation_config = config.get_generation_config()

        embedding_provider = create_provider(embedding_config)
        generator = create_provider(generation_config)

        store_config = dict(config.get_store_config())
        backend = store_config.pop("backend", "memory")
        options = store_config.get(backend, {}) if backend != "memory" else {}

        store = create_vector_store(
            backend=backend,
            dimensions=config.get_pipeline_config().dimensions,
            **options,
        )

        logger.info(
            f"Runtime ready: embeddings={embedding_config.provider}/{embedding_config.model}, "
            f"generation={generation_config.provider}/{generation_config.model}, store={backend}"
        )
        return cls(
            config,
            embedding_provider,
            generator,
            store,
            listener=listener,
            group_resolver=group_resolver,
        )

    def close(self, cancel_pending: bool = False) -> None:
        """Shut down the pipeline, then release the store and providers."""
        self.pipeline.shutdown(wait=True, cancel_pending=cancel_pending)
        self.store.close()
        self.embedding_provider.close()
        if self.generator is not self.embedding_provider:
            self.generator.close()

    def __enter__(self) -> "RagRuntime":
        return self

    def __exit__(self, *args) -> None:
        self.close()
