import math

import numpy as np
import pytest

from shardstore.errors import InvalidArgumentError
from shardstore.vector_store.metrics import (
    DistanceMetric,
    canberra_distance,
    chebyshev_distance,
    cosine_distance,
    euclidean_distance,
    jaccard_dissimilarity,
    manhattan_distance,
    normalize_metric,
)


def test_cosine_of_vector_with_itself_is_zero():
    assert cosine_distance([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(0.0, abs=1e-12)


def test_cosine_orthogonal_opposite_and_zero():
    assert cosine_distance([1.0, 0.0], [0.0, 1.0]) == 1.0
    assert cosine_distance([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(2.0)
    assert cosine_distance([0.0, 0.0], [3.0, 4.0]) == 1.0
    assert cosine_distance([0.0, 0.0], [0.0, 0.0]) == 1.0


def test_jaccard_counts_only_active_dimensions():
    assert jaccard_dissimilarity([1.0, 0.0, 2.0, 0.0], [1.0, 3.0, 0.0, 0.0]) == pytest.approx(2 / 3)
    assert jaccard_dissimilarity([1.0, 2.0], [1.0, 2.0]) == 0.0


def test_jaccard_with_no_active_dimension_is_zero():
    assert jaccard_dissimilarity([0.0, 0.0], [0.0, 0.0]) == 0.0


def test_minkowski_family():
    assert euclidean_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)
    assert manhattan_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(7.0)
    assert chebyshev_distance([1.0, 5.0, 2.0], [4.0, 1.0, 2.0]) == pytest.approx(4.0)


def test_canberra():
    assert canberra_distance([1.0, 2.0], [3.0, 2.0]) == pytest.approx(0.5)


def test_canberra_is_nan_when_a_dimension_is_zero_in_both():
    assert math.isnan(canberra_distance([0.0, 1.0], [0.0, 2.0]))


def test_metrics_broadcast_against_a_matrix():
    matrix = np.array([[1.0, 0.0], [0.0, 1.0], [2.0, 0.0]])
    distances = cosine_distance(np.array([1.0, 0.0]), matrix)
    assert isinstance(distances, np.ndarray)
    assert distances.tolist() == pytest.approx([0.0, 1.0, 0.0], abs=1e-12)
    assert euclidean_distance([0.0, 0.0], matrix).tolist() == pytest.approx([1.0, 1.0, 2.0])


def test_metric_functions_return_python_floats_for_vectors():
    assert type(manhattan_distance([1.0], [2.0])) is float


def test_normalize_metric():
    assert normalize_metric(" Cosine ") is DistanceMetric.COSINE
    assert normalize_metric(DistanceMetric.CANBERRA) is DistanceMetric.CANBERRA
    with pytest.raises(InvalidArgumentError):
        normalize_metric("hamming")
