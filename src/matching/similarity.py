"""Cosine similarity over plain float vectors."""

import math
from collections.abc import Sequence

from src.core.errors import DataIntegrityError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine of the angle between ``a`` and ``b``, in [-1, 1].

    Raises:
        DataIntegrityError: If the vectors have different lengths.
    """
    if len(a) != len(b):
        msg = f"vector length mismatch: {len(a)} != {len(b)}"
        raise DataIntegrityError(msg)

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # Floating-point error can push |v . v| / |v|^2 slightly past 1.
    return max(-1.0, min(1.0, similarity))
