"""
Shared value types: documents, query results and vector coercion.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Iterator, List, Sequence, Tuple

import numpy as np

from shardstore.errors import InvalidArgumentError

VectorLike = Sequence[float] | np.ndarray


def _new_document_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Document:
    """Stored text payload. Updates are remove + insert."""

    text: str = ""
    id: str = field(default_factory=_new_document_id)


@dataclass(frozen=True)
class QueryResult:
    """
    Ranked documents with the raw metric value for each, best match first.

    `distances[i]` is the metric output for `documents[i]`; `scores` converts
    them to the `1 - d` ranking key, where larger means closer.
    """

    documents: List[Document] = field(default_factory=list)
    distances: List[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.documents) != len(self.distances):
            raise InvalidArgumentError(
                f"QueryResult needs one distance per document: "
                f"{len(self.documents)} documents, {len(self.distances)} distances"
            )

    @property
    def scores(self) -> List[float]:
        return [1.0 - d for d in self.distances]

    def truncate(self, top_k: int) -> "QueryResult":
        return QueryResult(list(self.documents[:top_k]), list(self.distances[:top_k]))

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self) -> Iterator[Tuple[Document, float]]:
        return iter(zip(self.documents, self.distances))


def as_vector(vector: VectorLike | None, name: str = "vector") -> np.ndarray:
    """
    Coerce input into a read-only 1-D float64 array.

    Rejects None, empty and non 1-D input; callers keep the returned array
    without copying it again.
    """
    if vector is None:
        raise InvalidArgumentError(f"{name} must not be None")
    array = np.array(vector, dtype=np.float64)
    if array.ndim != 1:
        raise InvalidArgumentError(f"{name} must be one-dimensional, got shape {array.shape}")
    if array.size == 0:
        raise InvalidArgumentError(f"{name} length cannot be zero")
    array.flags.writeable = False
    return array


__all__ = ["Document", "QueryResult", "VectorLike", "as_vector"]
