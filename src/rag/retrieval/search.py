"""
Retrieval Search - Find the chunks of a board most relevant to a question.
"""

import logging
from typing import List, Optional, Sequence

from vector.contracts.models import SearchHit
from vector.store import VectorStore

from ..core.exceptions import InvalidInputError, RagError
from ..core.logging import log_with_context
from ..core.types import PipelineStage
from ..core.utils import preview
from .embedder import EmbeddingClient

logger = logging.getLogger(__name__)


class Retriever:
    """
    Embeds a query and searches the vector store within one board.

    Results are returned exactly as the store ranked them. Nothing is
    retried here; provider and store errors propagate with the board and
    stage attached.
    """

    def __init__(self, embedder: EmbeddingClient, store: VectorStore):
        self.embedder = embedder
        self.store = store

    def retrieve(
        self,
        query: str,
        board_id: str,
        limit: int = 10,
        unit_ids: Optional[Sequence[str]] = None,
    ) -> List[SearchHit]:
        """
        Retrieve the top chunks for a query.

        Args:
            query: Natural-language question
            board_id: Board to search
            limit: Maximum number of hits (must be > 0)
            unit_ids: None searches the whole board; a list restricts the
                search to those units (an empty list yields no hits)

        Returns:
            Hits ordered by similarity descending

        Raises:
            InvalidInputError: If the query is blank or limit <= 0
            ProviderError: If embedding the query fails
            DimensionMismatchError: If the query vector does not fit the store
        """
        if not query or not query.strip():
            raise InvalidInputError(
                "Query must not be empty",
                board_id=board_id,
                stage=PipelineStage.RETRIEVE,
            )
        if limit <= 0:
            raise InvalidInputError(
                f"limit must be positive, got {limit}",
                board_id=board_id,
                stage=PipelineStage.RETRIEVE,
            )
        if unit_ids is not None and len(unit_ids) == 0:
            logger.debug(f"Empty unit scope on board {board_id}; nothing to search")
            return []

        try:
            query_vector = self.embedder.embed(query)
            hits = self.store.search(query_vector, board_id, limit, unit_ids=unit_ids)
        except RagError as e:
            if e.board_id is None:
                e.board_id = board_id
            if e.stage is None or e.stage == PipelineStage.EMBED:
                e.stage = PipelineStage.RETRIEVE
            raise

        log_with_context(
            logger,
            logging.DEBUG,
            f"Retrieved {len(hits)} hits for query '{preview(query)}'",
            board_id=board_id,
            stage=PipelineStage.RETRIEVE,
        )
        return hits
