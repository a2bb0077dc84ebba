"""
Prompt templates for board chat and board summaries.
"""

from .board_chat import (
    EMPTY_BOARD_SUMMARY,
    INSUFFICIENT_CONTEXT_ANSWER,
    PROMPT_VERSION,
    SUMMARY_SYSTEM_PROMPT,
    SYSTEM_PROMPT,
    build_chat_prompt,
    build_context,
    build_summary_prompt,
)

__all__ = [
    "EMPTY_BOARD_SUMMARY",
    "INSUFFICIENT_CONTEXT_ANSWER",
    "PROMPT_VERSION",
    "SUMMARY_SYSTEM_PROMPT",
    "SYSTEM_PROMPT",
    "build_chat_prompt",
    "build_context",
    "build_summary_prompt",
]
