"""
Prompts for answering questions about a board and summarizing it.

The chat prompt labels each retrieved chunk `[Source N]` (1-based, in rank
order) so answers can cite the sources returned alongside them.
"""

from typing import List, Tuple

# Version identifier for prompt tracking
PROMPT_VERSION = "v1_board_chat"


SYSTEM_PROMPT = """You are an assistant helping a user understand and work with their personal knowledge board. The board holds notes, documents, video transcripts and web pages.

Answer using only the numbered sources provided. Cite sources inline as [Source N]. If the sources do not contain enough information, say so plainly and suggest what kind of content would help answer the question."""


INSUFFICIENT_CONTEXT_ANSWER = (
    "I don't have enough context from this board to answer that question. "
    "Try adding more content or rephrasing your question."
)


EMPTY_BOARD_SUMMARY = "This board is empty or contains no text content yet."


SUMMARY_SYSTEM_PROMPT = """You summarize the content of a personal knowledge board. Be concise. Identify the main themes, key topics and the overall purpose of the board."""


def format_source(number: int, text: str) -> str:
    """Render one labelled context entry."""
    return f"[Source {number}]:\n{text}"


def build_context(chunk_texts: List[str]) -> str:
    """Label chunk texts `[Source 1]`, `[Source 2]`, ... in the given order."""
    return "\n\n".join(
        format_source(number, text)
        for number, text in enumerate(chunk_texts, start=1)
    )


def build_chat_prompt(chunk_texts: List[str], question: str) -> str:
    """
    Build the user prompt for a board question.

    Args:
        chunk_texts: Retrieved chunk texts in rank order
        question: The user's question

    Returns:
        Prompt containing the labelled context followed by the question
    """
    return (
        "Context from the user's board:\n"
        f"{build_context(chunk_texts)}\n\n"
        f"User's question: {question}\n\n"
        "Answer based on the context above."
    )


def build_summary_prompt(entries: List[Tuple[str, str]]) -> str:
    """
    Build the prompt for a board summary.

    Args:
        entries: (unit_id, excerpt) pairs, one per sampled unit
    """
    content = "\n\n".join(f"[{unit_id}] {excerpt}..." for unit_id, excerpt in entries)
    return f"Summarize this board's content.\n\nContent:\n{content}"
