"""Cosine similarity on the 0-100 scale used by the scorer."""
from __future__ import annotations

import math
from typing import Sequence

from gigradar.errors import DimensionMismatchError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    dot = 0.0
    mag_a = 0.0
    mag_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        mag_a += x * x
        mag_b += y * y

    if mag_a == 0 or mag_b == 0:
        return 0.0

    similarity = dot / (math.sqrt(mag_a) * math.sqrt(mag_b))
    # Text embeddings rarely go negative; anything outside [0, 1] is clamped.
    return max(0.0, min(1.0, similarity)) * 100
