"""
RAG Answerer - Ground a generated answer in a board's retrieved chunks.

Flow for a question:
1. Retrieve the top-K chunks of the board (optionally scoped to units)
2. No hits: return the canned insufficient-context answer without calling the model
3. Label each chunk `[Source N]`, fit the context into the character budget
4. Generate one answer and attach one SourceRef per label
"""

import logging
from typing import List, Optional, Sequence, Tuple

from ..contracts.retrieval_contracts import ChatAnswer, SourceRef
from ..core.exceptions import RagConfigError, RagError
from ..core.logging import log_with_context
from ..core.types import AnswerConfig, PipelineStage
from ..prompts.board_chat import (
    EMPTY_BOARD_SUMMARY,
    INSUFFICIENT_CONTEXT_ANSWER,
    SUMMARY_SYSTEM_PROMPT,
    SYSTEM_PROMPT,
    build_chat_prompt,
    build_summary_prompt,
)
from ..providers.base import TextGenerator
from .search import Retriever

logger = logging.getLogger(__name__)


def fit_to_budget(texts: List[str], budget: int) -> Tuple[List[str], bool]:
    """
    Cut chunk texts so their combined length fits `budget` characters.

    When the texts already fit they are returned unchanged. Otherwise every
    text is cut to its first `budget // len(texts)` characters, and never to
    fewer than one; no text is dropped, so source labels stay aligned with the
    retrieved hits.

    Returns:
        Tuple of (texts, truncated flag)
    """
    if not texts or sum(len(text) for text in texts) <= budget:
        return texts, False

    per_chunk = max(budget // len(texts), 1)
    return [text[:per_chunk] for text in texts], True


class BoardAnswerer:
    """
    Answers questions about a board from its retrieved content.

    Example:
        >>> answerer = BoardAnswerer(retriever, generator)
        >>> result = answerer.answer("What does the fox do?", board_id="B")
        >>> result.sources[0].unit_id
        'U1'
    """

    def __init__(
        self,
        retriever: Retriever,
        generator: TextGenerator,
        config: Optional[AnswerConfig] = None,
    ):
        self.retriever = retriever
        self.generator = generator
        self.config = config or AnswerConfig()

        if self.config.max_context_chars < self.config.top_k:
            raise RagConfigError(
                f"max_context_chars ({self.config.max_context_chars}) must be at least "
                f"top_k ({self.config.top_k}) so every source keeps some text"
            )

    def answer(
        self,
        query: str,
        board_id: str,
        unit_ids: Optional[Sequence[str]] = None,
    ) -> ChatAnswer:
        """
        Answer a question from a board's content.

        Args:
            query: Natural-language question
            board_id: Board to answer from
            unit_ids: Optional unit restriction (None = whole board)

        Returns:
            ChatAnswer whose sources[i] corresponds to `[Source i+1]` in the prompt

        Raises:
            InvalidInputError: If the query is blank
            ProviderError: If retrieval embedding or generation fails
        """
        hits = self.retriever.retrieve(
            query,
            board_id,
            limit=self.config.top_k,
            unit_ids=unit_ids,
        )

        if not hits:
            log_with_context(
                logger,
                logging.INFO,
                "No relevant content found; returning insufficient-context answer",
                board_id=board_id,
                stage=PipelineStage.RETRIEVE,
            )
            return ChatAnswer(answer=INSUFFICIENT_CONTEXT_ANSWER, sources=[])

        texts, truncated = fit_to_budget(
            [hit.chunk_text for hit in hits],
            self.config.max_context_chars,
        )
        if truncated:
            log_with_context(
                logger,
                logging.WARNING,
                f"Context exceeded {self.config.max_context_chars} chars; "
                f"cut each of {len(texts)} chunks to {len(texts[0])} chars",
                board_id=board_id,
                stage=PipelineStage.GENERATE,
            )

        prompt = build_chat_prompt(texts, query)
        content = self._generate(prompt, SYSTEM_PROMPT, board_id)

        sources = [
            SourceRef(
                unit_id=hit.unit_id,
                chunk_index=hit.chunk_index,
                relevance=hit.similarity,
            )
            for hit in hits
        ]

        log_with_context(
            logger,
            logging.INFO,
            f"Answered question with {len(sources)} sources",
            board_id=board_id,
            stage=PipelineStage.GENERATE,
        )
        return ChatAnswer(answer=content, sources=sources, context_truncated=truncated)

    def summarize_board(self, board_id: str) -> str:
        """
        Summarize a board from the opening text of its units.

        Samples the first chunk of up to `summary_max_units` units, keeps
        `summary_chars_per_unit` characters of each, and makes one generation
        call. An empty board returns a fixed message without calling the model.
        """
        records = self.retriever.store.board_overview(
            board_id,
            self.config.summary_max_units,
        )

        if not records:
            return EMPTY_BOARD_SUMMARY

        entries = [
            (record.unit_id, record.chunk_text[:self.config.summary_chars_per_unit])
            for record in records
        ]
        return self._generate(build_summary_prompt(entries), SUMMARY_SYSTEM_PROMPT, board_id)

    def _generate(self, prompt: str, system_prompt: str, board_id: str) -> str:
        try:
            response = self.generator.generate(prompt, system_prompt=system_prompt)
        except RagError as e:
            if e.board_id is None:
                e.board_id = board_id
            e.stage = PipelineStage.GENERATE
            raise

        return response.content or ""
