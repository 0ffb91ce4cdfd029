"""Vector similarity and score normalization."""

import math
from collections.abc import Sequence


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 when either vector is empty, the lengths differ, or either
    norm is zero.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = dot_product / (norm_a * norm_b)
    # Float error can push identical vectors slightly past 1
    return max(-1.0, min(1.0, similarity))


def normalize_score(score: float, ceiling: float) -> float:
    """Clamp a raw score into [0, 1] given an assumed ceiling."""
    if ceiling <= 0 or score <= 0:
        return 0.0
    return min(score / ceiling, 1.0)
