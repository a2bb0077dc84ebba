"""
Utilities for callers of the retrieval pipeline.
"""

from .retry import RETRYABLE_ERRORS, RetryConfig, RetryResult, calculate_delay, retry_with_backoff

__all__ = [
    "RETRYABLE_ERRORS",
    "RetryConfig",
    "RetryResult",
    "calculate_delay",
    "retry_with_backoff",
]
