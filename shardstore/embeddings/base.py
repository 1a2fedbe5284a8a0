"""
Embedding provider interface.
"""

from __future__ import annotations

from typing import List, Protocol, Sequence, runtime_checkable


@runtime_checkable
class Embedder(Protocol):
    """
    Converts text into fixed-length vectors.

    `get_vectors` returns one vector per input, in input order. Provider
    failures propagate to the caller unchanged.
    """

    def get_vector(self, text: str) -> List[float]:
        ...

    def get_vectors(self, texts: Sequence[str]) -> List[List[float]]:
        ...


__all__ = ["Embedder"]
