"""
Deterministic feature-hashing embeddings for offline use and tests.
"""

from __future__ import annotations

import hashlib
import re
from typing import List, Sequence

from shardstore.config import settings

DEFAULT_HASHING_DIMENSION = settings.hashing_dimension

TOKEN_PATTERN = re.compile(r"[a-z0-9]+")


class HashingEmbedder:
    """
    Bag-of-words vectors built by hashing lower-cased tokens into buckets.

    Each token adds +1 or -1 (chosen by a second hash bit) to one bucket, so
    texts sharing words get nearby vectors. Same text, same vector, in any
    process. Text without tokens maps to the zero vector.
    """

    def __init__(self, dimension: int = DEFAULT_HASHING_DIMENSION) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be > 0")
        self.dimension = dimension

    def get_vector(self, text: str) -> List[float]:
        vector = [0.0] * self.dimension
        for token in TOKEN_PATTERN.findall(text.lower()):
            digest = hashlib.md5(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:8], "big") % self.dimension
            sign = 1.0 if digest[8] & 1 else -1.0
            vector[bucket] += sign
        return vector

    def get_vectors(self, texts: Sequence[str]) -> List[List[float]]:
        return [self.get_vector(text) for text in texts]


__all__ = ["HashingEmbedder", "DEFAULT_HASHING_DIMENSION"]
