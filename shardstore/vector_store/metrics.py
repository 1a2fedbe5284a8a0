"""
Distance and dissimilarity functions used for exhaustive scoring.

Each function compares `x` against `y` along the last axis, so `y` may be a
single vector or a `(n, d)` matrix of stored vectors. Scalars come back as
Python floats, matrix input as a float64 array of length `n`. Lengths are not
checked here; shards validate before calling.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, Tuple

import numpy as np

from shardstore.errors import InvalidArgumentError


class DistanceMetric(str, Enum):
    """Supported metrics for shard and database queries."""

    COSINE = "cosine"
    JACCARD = "jaccard"
    EUCLIDEAN = "euclidean"
    MANHATTAN = "manhattan"
    CHEBYSHEV = "chebyshev"
    CANBERRA = "canberra"


MetricInput = str | DistanceMetric


def _operands(x, y) -> Tuple[np.ndarray, np.ndarray]:
    return np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64)


def _finish(value: np.ndarray) -> float | np.ndarray:
    if np.ndim(value) == 0:
        return float(value)
    return value


def cosine_distance(x: np.ndarray, y: np.ndarray) -> float | np.ndarray:
    """
    `1 - dot(x, y) / (|x| * |y|)`.

    A dot product of exactly zero yields 1.0 regardless of magnitude, which
    also covers zero vectors.
    """
    x, y = _operands(x, y)
    dot = np.sum(x * y, axis=-1)
    norms = np.sqrt(np.sum(x * x, axis=-1)) * np.sqrt(np.sum(y * y, axis=-1))
    with np.errstate(divide="ignore", invalid="ignore"):
        result = np.where(dot != 0.0, 1.0 - dot / norms, 1.0)
    return _finish(result)


def jaccard_dissimilarity(x: np.ndarray, y: np.ndarray) -> float | np.ndarray:
    """Share of differing dimensions among those where either operand is non-zero."""
    x, y = np.broadcast_arrays(*_operands(x, y))
    active = (x != 0.0) | (y != 0.0)
    total = np.count_nonzero(active, axis=-1)
    equal = np.count_nonzero(active & (x == y), axis=-1)
    with np.errstate(divide="ignore", invalid="ignore"):
        result = np.where(total != 0, 1.0 - equal / total, 0.0)
    return _finish(result)


def euclidean_distance(x: np.ndarray, y: np.ndarray) -> float | np.ndarray:
    x, y = _operands(x, y)
    diff = x - y
    return _finish(np.sqrt(np.sum(diff * diff, axis=-1)))


def manhattan_distance(x: np.ndarray, y: np.ndarray) -> float | np.ndarray:
    x, y = _operands(x, y)
    return _finish(np.sum(np.abs(x - y), axis=-1))


def chebyshev_distance(x: np.ndarray, y: np.ndarray) -> float | np.ndarray:
    x, y = _operands(x, y)
    return _finish(np.max(np.abs(x - y), axis=-1))


def canberra_distance(x: np.ndarray, y: np.ndarray) -> float | np.ndarray:
    """
    Sum of `|xi - yi| / (|xi| + |yi|)`.

    A dimension where both components are zero contributes NaN, and so does
    the whole sum.
    """
    x, y = _operands(x, y)
    with np.errstate(divide="ignore", invalid="ignore"):
        terms = np.abs(x - y) / (np.abs(x) + np.abs(y))
    return _finish(np.sum(terms, axis=-1))


METRIC_FUNCTIONS: Dict[DistanceMetric, Callable[[np.ndarray, np.ndarray], float | np.ndarray]] = {
    DistanceMetric.COSINE: cosine_distance,
    DistanceMetric.JACCARD: jaccard_dissimilarity,
    DistanceMetric.EUCLIDEAN: euclidean_distance,
    DistanceMetric.MANHATTAN: manhattan_distance,
    DistanceMetric.CHEBYSHEV: chebyshev_distance,
    DistanceMetric.CANBERRA: canberra_distance,
}


def normalize_metric(metric: MetricInput) -> DistanceMetric:
    """Normalize user metric input into a `DistanceMetric` value."""
    if isinstance(metric, DistanceMetric):
        return metric
    if isinstance(metric, str):
        key = metric.strip().lower()
        if key in DistanceMetric._value2member_map_:
            return DistanceMetric(key)
        allowed = sorted(DistanceMetric._value2member_map_.keys())
        raise InvalidArgumentError(f"Unsupported metric: {metric}. Supported: {allowed}")
    raise InvalidArgumentError(f"Unsupported metric type: {type(metric).__name__}")


__all__ = [
    "DistanceMetric",
    "MetricInput",
    "METRIC_FUNCTIONS",
    "normalize_metric",
    "cosine_distance",
    "jaccard_dissimilarity",
    "euclidean_distance",
    "manhattan_distance",
    "chebyshev_distance",
    "canberra_distance",
]
