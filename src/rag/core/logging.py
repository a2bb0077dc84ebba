"""
Logging utilities for the board retrieval module.

Provides structured logging with correlation support for tracing a content
unit through the pipeline (unit -> chunks -> embeddings -> store) and a
question through retrieval and generation.
"""

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional


CORRELATION_FIELDS = (
    "correlation_id",
    "job_id",
    "unit_id",
    "board_id",
    "stage",
)


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs JSON-structured log lines.

    Each log line includes:
    - Standard log fields (timestamp, level, message, logger)
    - Correlation fields if present (unit_id, board_id, stage, job_id)
    - Exception text when the record carries exc_info
    """

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_entry = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_timestamp:
            log_entry["timestamp"] = datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat()

        for name in CORRELATION_FIELDS + ("error_type", "provider", "attempt"):
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = str(value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Formatter that outputs human-readable log lines with correlation context.

    Format: TIMESTAMP - LOGGER - LEVEL - MESSAGE [unit_id=X board_id=Y]
    """

    def __init__(self, include_timestamp: bool = True):
        if include_timestamp:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        else:
            fmt = "%(name)s - %(levelname)s - %(message)s"
        super().__init__(fmt)

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with correlation context."""
        base = super().format(record)

        context_parts = []
        for name in CORRELATION_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                context_parts.append(f"{name}={value}")

        if context_parts:
            return f"{base} [{' '.join(context_parts)}]"
        return base


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a logger instance for the retrieval module.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional logging level override

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if level is not None:
        logger.setLevel(level)

    return logger


def configure_logging(
    level: int = logging.INFO,
    include_timestamp: bool = True,
    structured: bool = False,
) -> None:
    """
    Configure logging for the `rag` and `vector` packages.

    Args:
        level: Logging level (default: INFO)
        include_timestamp: Whether to include timestamp in log messages
        structured: If True, output JSON-structured logs; if False, human-readable

    Example:
        >>> from rag.core.logging import configure_logging
        >>> configure_logging(level=logging.DEBUG, structured=True)
    """
    for package in ("rag", "vector"):
        package_logger = logging.getLogger(package)
        package_logger.setLevel(level)

        # Only add handler if none exist (avoid duplicate handlers)
        if package_logger.handlers:
            continue

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)

        if structured:
            formatter = StructuredFormatter(include_timestamp=include_timestamp)
        else:
            formatter = HumanReadableFormatter(include_timestamp=include_timestamp)

        handler.setFormatter(formatter)
        package_logger.addHandler(handler)


class CorrelationContext:
    """
    Context manager for adding correlation fields to log records.

    The active context is tracked per thread so concurrent ingestion workers
    do not see each other's fields.

    Example:
        >>> with CorrelationContext(unit_id="u1", board_id="b1"):
        ...     log_with_context(logger, logging.INFO, "Embedding unit")
    """

    _local = threading.local()

    def __init__(
        self,
        unit_id: Optional[str] = None,
        board_id: Optional[str] = None,
        job_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ):
        self.context = {
            "unit_id": unit_id,
            "board_id": board_id,
            "job_id": job_id,
            "correlation_id": correlation_id,
            **extra,
        }
        self.context = {k: v for k, v in self.context.items() if v is not None}
        self._previous: Optional["CorrelationContext"] = None

    def __enter__(self) -> "CorrelationContext":
        self._previous = getattr(CorrelationContext._local, "current", None)
        if self._previous is not None:
            # Nested contexts inherit fields they do not set
            self.context = {**self._previous.context, **self.context}
        CorrelationContext._local.current = self
        return self

    def __exit__(self, *args) -> None:
        CorrelationContext._local.current = self._previous

    @classmethod
    def get_current(cls) -> Dict[str, Any]:
        """Get the correlation context of the calling thread."""
        current = getattr(cls._local, "current", None)
        if current is None:
            return {}
        return current.context.copy()


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    **extra: Any,
) -> None:
    """
    Log a message with correlation context.

    Merges the current CorrelationContext with any extra fields provided.

    Args:
        logger: The logger to use
        level: Log level (e.g., logging.INFO)
        message: Log message
        **extra: Additional fields to include
    """
    context = CorrelationContext.get_current()
    context.update({k: v for k, v in extra.items() if v is not None})
    logger.log(level, message, extra=context)
