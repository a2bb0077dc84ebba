"""
Board Retrieval (RAG) Module

This module turns the text of content units attached to a board into
retrievable chunks and answers natural-language questions grounded in them.

Key components:
- contracts/: Data models for chunks, chat requests and answers
- core/: Config, types, exceptions and logging utilities
- providers/: Embedding and text-generation provider clients (Ollama, Gemini)
- retrieval/: Chunking, embedding, retrieval, answering and ingestion
- prompts/: Prompt templates for board chat and summaries
- cli/: Command line entry points
"""

__version__ = "0.1.0"
