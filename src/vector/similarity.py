"""
Similarity scoring and ranking shared by the vector store backends.
"""

import heapq
import math
from typing import Iterable, List

from .contracts.models import EmbeddingRecord, SearchHit


def cosine_similarity(vec_a: List[float], vec_b: List[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Equals 1 - cosine distance: identical direction scores 1.0, orthogonal
    vectors 0.0. A zero vector has no direction and scores 0.0.

    Args:
        vec_a: First vector
        vec_b: Second vector

    Returns:
        Cosine similarity score between -1 and 1

    Raises:
        ValueError: If vectors have different dimensions or are empty
    """
    if not vec_a or not vec_b:
        raise ValueError("Vectors cannot be empty")

    if len(vec_a) != len(vec_b):
        raise ValueError(f"Vector dimensions must match: {len(vec_a)} != {len(vec_b)}")

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a_sq = sum(a * a for a in vec_a)
    norm_b_sq = sum(b * b for b in vec_b)

    if norm_a_sq == 0 or norm_b_sq == 0:
        return 0.0

    # One square root keeps self-similarity at exactly 1.0
    similarity = dot_product / math.sqrt(norm_a_sq * norm_b_sq)
    return max(-1.0, min(1.0, similarity))


def rank_records(
    query_vector: List[float],
    records: Iterable[EmbeddingRecord],
    limit: int,
) -> List[SearchHit]:
    """
    Score records against a query and return the best `limit` hits.

    Order is similarity descending, ties broken by ascending unit_id and
    then chunk_index, so equal inputs always rank identically.
    """
    hits = (
        SearchHit(
            unit_id=record.unit_id,
            chunk_index=record.chunk_index,
            chunk_text=record.chunk_text,
            similarity=cosine_similarity(query_vector, record.vector),
        )
        for record in records
    )
    return heapq.nsmallest(
        limit,
        hits,
        key=lambda hit: (-hit.similarity, hit.unit_id, hit.chunk_index),
    )
