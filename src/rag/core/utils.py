"""
Core Utilities - Shared helper functions for the retrieval module.
"""

import hashlib
from typing import Iterable, List, Optional


def compute_content_hash(content: str) -> str:
    """
    Compute SHA256 hash of text content.

    Args:
        content: Text content to hash

    Returns:
        Hex-encoded SHA256 hash (64 characters)

    Example:
        >>> compute_content_hash("Hello, World!")
        'dffd6021bb2bd5b0af676290809ec3a53191dd81c7f70a4b28688a362182986f'
    """
    return hashlib.sha256(content.encode()).hexdigest()


def merge_unique(*groups: Optional[Iterable[str]]) -> Optional[List[str]]:
    """
    Merge id lists, dropping duplicates while keeping first-seen order.

    Returns None when every group is None (no filter at all), which is
    different from an empty list (an empty scope).
    """
    if all(group is None for group in groups):
        return None

    merged: List[str] = []
    seen = set()
    for group in groups:
        for item in group or []:
            if item not in seen:
                seen.add(item)
                merged.append(item)
    return merged


def preview(text: str, limit: int = 50) -> str:
    """Shorten text for log lines."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."
