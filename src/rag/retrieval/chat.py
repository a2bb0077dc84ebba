"""
Chat Service - Entry point for board questions.

Expands group filters to unit ids, then delegates to the BoardAnswerer.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..contracts.retrieval_contracts import ChatAnswer, ChatRequest
from ..core.exceptions import InvalidInputError, RagConfigError
from ..core.logging import CorrelationContext
from ..core.utils import merge_unique, preview
from .answerer import BoardAnswerer

logger = logging.getLogger(__name__)


class GroupResolver(ABC):
    """Maps board groups to the content units they contain."""

    @abstractmethod
    def resolve_units(self, board_id: str, group_ids: List[str]) -> List[str]:
        """Return the unit ids contained in `group_ids` on `board_id`."""
        pass


class StaticGroupResolver(GroupResolver):
    """
    Group resolver over an in-memory mapping.

    Args:
        groups: board_id -> group_id -> unit ids
    """

    def __init__(self, groups: Optional[Dict[str, Dict[str, List[str]]]] = None):
        self.groups = groups or {}

    def resolve_units(self, board_id: str, group_ids: List[str]) -> List[str]:
        board_groups = self.groups.get(board_id, {})
        units: List[str] = []
        for group_id in group_ids:
            units.extend(board_groups.get(group_id, []))
        return units


class ChatService:
    """
    Answers ChatRequests against a board.

    The search scope is the union of the explicit unit ids and the units of
    the requested groups, deduplicated in first-seen order. With neither
    filter the whole board is searched; a filter that resolves to no units
    searches nothing.
    """

    def __init__(
        self,
        answerer: BoardAnswerer,
        group_resolver: Optional[GroupResolver] = None,
    ):
        self.answerer = answerer
        self.group_resolver = group_resolver

    def chat(self, request: ChatRequest) -> ChatAnswer:
        """
        Answer a chat request.

        Raises:
            InvalidInputError: If board_id or query is empty
            RagConfigError: If groups are requested without a GroupResolver
            ProviderError: If retrieval or generation fails
        """
        if not request.board_id:
            raise InvalidInputError("board_id is required")

        with CorrelationContext(board_id=request.board_id):
            group_units = None
            if request.group_ids is not None:
                if self.group_resolver is None:
                    raise RagConfigError(
                        "Group filtering requires a GroupResolver",
                        board_id=request.board_id,
                    )
                group_units = self.group_resolver.resolve_units(
                    request.board_id,
                    request.group_ids,
                )
                logger.debug(
                    f"Resolved {len(request.group_ids)} groups to {len(group_units)} units"
                )

            scope = merge_unique(request.unit_ids, group_units)

            logger.info(
                f"Chat request on board {request.board_id}: '{preview(request.query)}' "
                f"(scope: {'whole board' if scope is None else f'{len(scope)} units'})"
            )
            return self.answerer.answer(request.query, request.board_id, unit_ids=scope)

    def summarize(self, board_id: str) -> str:
        """Summarize a board's content."""
        if not board_id:
            raise InvalidInputError("board_id is required")
        return self.answerer.summarize_board(board_id)
