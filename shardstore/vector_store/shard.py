"""
Shard: paired vector/document arrays with exhaustive top-K queries.
"""

from __future__ import annotations

import logging
import math
import os
import threading
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Tuple

import numpy as np
from pydantic import ValidationError

from shardstore.config import settings
from shardstore.errors import (
    DimensionMismatchError,
    DocumentNotFoundError,
    IndexOutOfRangeError,
    InvalidArgumentError,
    PersistenceFormatError,
    PersistenceNotFoundError,
)
from shardstore.models.schemas import DocumentRecord, ShardDocumentsFile
from shardstore.vector_store.base import Document, QueryResult, VectorLike, as_vector
from shardstore.vector_store.locks import ReadWriteLock
from shardstore.vector_store.metrics import (
    METRIC_FUNCTIONS,
    DistanceMetric,
    MetricInput,
    normalize_metric,
)

VECTORS_FILE = "vectors.npy"
DOCUMENTS_FILE = "documents.json"

DEFAULT_TOP_K = settings.default_top_k
DEFAULT_MIN_PARTITION_SIZE = settings.min_partition_size
DEFAULT_QUERY_CACHE_SIZE = settings.query_cache_size

logger = logging.getLogger(__name__)

# (positions, ranking keys, raw distances) for one ranked slice of the shard
_Ranked = Tuple[np.ndarray, np.ndarray, np.ndarray]


def default_worker_count() -> int:
    return settings.query_workers or os.cpu_count() or 1


def validate_top_k(top_k: int) -> int:
    if isinstance(top_k, bool) or not isinstance(top_k, (int, np.integer)):
        raise InvalidArgumentError(f"top_k must be an integer, got {type(top_k).__name__}")
    if top_k <= 0:
        raise InvalidArgumentError("Number of results requested (top_k) must be greater than zero.")
    return int(top_k)


def ranking_order(keys: np.ndarray, positions: np.ndarray) -> np.ndarray:
    """
    Indices sorting candidates best first.

    Order: NaN keys last, then key descending, then position ascending.
    """
    missing = np.isnan(keys)
    negated = np.where(missing, 0.0, -keys)
    return np.lexsort((positions, negated, missing))


class Shard:
    """
    A named partition owning positionally paired vectors and documents.

    `vectors[i]` belongs to `documents[i]`. Queries, snapshots and saves run
    under the read side of a reader-writer lock; add/remove/clear and the
    commit step of `load` take the write side.
    """

    def __init__(
        self,
        name: str,
        *,
        max_workers: int | None = None,
        min_partition_size: int | None = None,
        cache_size: int | None = None,
        logger_: logging.Logger | None = None,
    ) -> None:
        if not name or not name.strip():
            raise InvalidArgumentError("Shard name must not be empty")
        self.name = name
        self.max_workers = max_workers or default_worker_count()
        self.min_partition_size = min_partition_size or DEFAULT_MIN_PARTITION_SIZE
        self.cache_size = cache_size or DEFAULT_QUERY_CACHE_SIZE
        self.logger = logger_ or logger

        self._vectors: List[np.ndarray] = []
        self._documents: List[Document] = []
        self._lock = ReadWriteLock()

        # guards the cosine cache and the lazily stacked matrix, both of which
        # readers populate concurrently
        self._cache_lock = threading.Lock()
        self._cache: OrderedDict[Tuple[int, bytes], QueryResult] = OrderedDict()
        self._matrix: np.ndarray | None = None

        self._save_lock = threading.Lock()
        self._version = 0
        # (resolved base path, version) of the last save or load
        self._persisted: Tuple[Path, int] | None = None

    # --- Introspection ---
    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._documents)

    @property
    def count(self) -> int:
        return len(self)

    @property
    def dimension(self) -> int | None:
        with self._lock.read_locked():
            return self._dimension()

    @property
    def documents(self) -> Tuple[Document, ...]:
        with self._lock.read_locked():
            return tuple(self._documents)

    @property
    def vectors(self) -> Tuple[np.ndarray, ...]:
        with self._lock.read_locked():
            return tuple(self._vectors)

    @property
    def is_dirty(self) -> bool:
        with self._lock.read_locked():
            return self._persisted is None or self._persisted[1] != self._version

    def __repr__(self) -> str:
        return f"Shard(name={self.name!r}, count={len(self._documents)})"

    # --- Mutation ---
    def add(self, vector: VectorLike, doc: Document) -> None:
        if doc is None:
            raise InvalidArgumentError("doc must not be None")
        array = as_vector(vector)
        with self._lock.write_locked():
            dimension = self._dimension()
            if dimension is not None and array.shape[0] != dimension:
                raise DimensionMismatchError(dimension, array.shape[0])
            self._vectors.append(array)
            self._documents.append(doc)
            self._mutated()

    def remove(self, doc: Document) -> None:
        """Remove the first entry whose document equals `doc`."""
        if doc is None:
            raise InvalidArgumentError("doc must not be None")
        with self._lock.write_locked():
            try:
                position = self._documents.index(doc)
            except ValueError:
                raise DocumentNotFoundError(f"Document not found in shard {self.name!r}: {doc.id}") from None
            self._remove_position(position)

    def remove_vector(self, vector: VectorLike) -> None:
        """Remove the first entry whose vector is value-equal to `vector`."""
        array = as_vector(vector)
        with self._lock.write_locked():
            for position, stored in enumerate(self._vectors):
                if stored.shape == array.shape and np.array_equal(stored, array):
                    self._remove_position(position)
                    return
        raise DocumentNotFoundError(f"Vector not found in shard {self.name!r}")

    def remove_at(self, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, (int, np.integer)):
            raise InvalidArgumentError(f"index must be an integer, got {type(index).__name__}")
        with self._lock.write_locked():
            if index < 0 or index >= len(self._documents):
                raise IndexOutOfRangeError(
                    f"index {index} out of range for shard {self.name!r} with {len(self._documents)} entries"
                )
            self._remove_position(int(index))

    def clear(self) -> None:
        with self._lock.write_locked():
            self._vectors.clear()
            self._documents.clear()
            self._mutated()

    def reset_caches(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    # --- Queries ---
    def query(
        self,
        query_vector: VectorLike,
        top_k: int = DEFAULT_TOP_K,
        metric: MetricInput = DistanceMetric.COSINE,
    ) -> QueryResult:
        """
        Exhaustively score every stored vector and return the `top_k` closest.

        Only cosine results are cached.
        """
        metric = normalize_metric(metric)
        vector = as_vector(query_vector, "query_vector")
        top_k = validate_top_k(top_k)

        with self._lock.read_locked():
            dimension = self._dimension()
            if dimension is not None and vector.shape[0] != dimension:
                raise DimensionMismatchError(dimension, vector.shape[0])

            cache_key = None
            if metric is DistanceMetric.COSINE:
                cache_key = self._cache_key(vector)
                cached = self._cache_lookup(cache_key, top_k)
                if cached is not None:
                    return cached

            result = self._score(vector, top_k, metric)

            if cache_key is not None:
                self._cache_store(cache_key, result)
                return result.truncate(top_k)
        return result

    def query_cosine_similarity(self, query_vector: VectorLike, top_k: int = DEFAULT_TOP_K) -> QueryResult:
        return self.query(query_vector, top_k, DistanceMetric.COSINE)

    def query_jaccard_dissimilarity(self, query_vector: VectorLike, top_k: int = DEFAULT_TOP_K) -> QueryResult:
        return self.query(query_vector, top_k, DistanceMetric.JACCARD)

    def query_euclidean_distance(self, query_vector: VectorLike, top_k: int = DEFAULT_TOP_K) -> QueryResult:
        return self.query(query_vector, top_k, DistanceMetric.EUCLIDEAN)

    def query_manhattan_distance(self, query_vector: VectorLike, top_k: int = DEFAULT_TOP_K) -> QueryResult:
        return self.query(query_vector, top_k, DistanceMetric.MANHATTAN)

    def query_chebyshev_distance(self, query_vector: VectorLike, top_k: int = DEFAULT_TOP_K) -> QueryResult:
        return self.query(query_vector, top_k, DistanceMetric.CHEBYSHEV)

    def query_canberra_distance(self, query_vector: VectorLike, top_k: int = DEFAULT_TOP_K) -> QueryResult:
        return self.query(query_vector, top_k, DistanceMetric.CANBERRA)

    # --- Persistence ---
    def save(self, base_path: str | os.PathLike) -> bool:
        """
        Write `vectors.npy` and `documents.json` under `base_path/<name>/`.

        Skipped when nothing changed since the last save or load at the same
        `base_path`. Returns True when the artifacts were written.
        """
        root = Path(base_path).resolve()
        with self._save_lock:
            with self._lock.read_locked():
                if self._persisted == (root, self._version):
                    self.logger.debug("Shard unchanged, save skipped", extra={"shard": self.name})
                    return False
                version = self._version
                matrix = self._stacked()
                documents = list(self._documents)

            directory = root / self.name
            directory.mkdir(parents=True, exist_ok=True)
            payload = ShardDocumentsFile(
                shard=self.name,
                documents=[DocumentRecord(id=doc.id, text=doc.text) for doc in documents],
            )

            vectors_tmp = directory / (VECTORS_FILE + ".tmp")
            documents_tmp = directory / (DOCUMENTS_FILE + ".tmp")
            with open(vectors_tmp, "wb") as fh:
                np.save(fh, matrix, allow_pickle=False)
            documents_tmp.write_text(payload.model_dump_json(), encoding="utf-8")
            os.replace(vectors_tmp, directory / VECTORS_FILE)
            os.replace(documents_tmp, directory / DOCUMENTS_FILE)

            self._persisted = (root, version)
        self.logger.info(
            "Shard saved",
            extra={"shard": self.name, "count": len(documents), "path": str(directory)},
        )
        return True

    def load(self, base_path: str | os.PathLike) -> None:
        """
        Replace the shard contents with the artifacts under `base_path/<name>/`.

        Both artifacts are read and validated before anything in memory changes.
        """
        directory = Path(base_path) / self.name
        if not directory.is_dir():
            raise PersistenceNotFoundError(f"Directory {directory} not found.")
        vectors_path = directory / VECTORS_FILE
        documents_path = directory / DOCUMENTS_FILE
        for artifact in (vectors_path, documents_path):
            if not artifact.is_file():
                raise PersistenceNotFoundError(f"Shard artifact {artifact} not found.")

        try:
            matrix = np.load(vectors_path, allow_pickle=False)
        except (ValueError, EOFError) as exc:
            raise PersistenceFormatError(f"Unreadable vectors file {vectors_path}: {exc}") from exc
        try:
            payload = ShardDocumentsFile.model_validate_json(documents_path.read_text(encoding="utf-8"))
        except ValidationError as exc:
            raise PersistenceFormatError(f"Invalid documents file {documents_path}: {exc}") from exc

        vectors, documents = self._validate_loaded(matrix, payload, directory)

        with self._lock.write_locked():
            self._vectors = vectors
            self._documents = documents
            self._mutated()
            self._persisted = (directory.parent.resolve(), self._version)
        self.logger.info(
            "Shard loaded",
            extra={"shard": self.name, "count": len(documents), "path": str(directory)},
        )

    # --- Internals ---
    def _dimension(self) -> int | None:
        return self._vectors[0].shape[0] if self._vectors else None

    def _remove_position(self, position: int) -> None:
        del self._vectors[position]
        del self._documents[position]
        self._mutated()

    def _mutated(self) -> None:
        # caller holds the write lock
        self._version += 1
        with self._cache_lock:
            self._cache.clear()
            self._matrix = None

    def _stacked(self) -> np.ndarray:
        with self._cache_lock:
            if self._matrix is None:
                if self._vectors:
                    matrix = np.stack(self._vectors)
                else:
                    matrix = np.empty((0, 0), dtype=np.float64)
                matrix.flags.writeable = False
                self._matrix = matrix
            return self._matrix

    @staticmethod
    def _cache_key(vector: np.ndarray) -> Tuple[int, bytes]:
        # adding 0.0 folds -0.0 into 0.0 so value-equal vectors share a key
        return vector.shape[0], (vector + 0.0).tobytes()

    def _cache_lookup(self, key: Tuple[int, bytes], top_k: int) -> QueryResult | None:
        with self._cache_lock:
            cached = self._cache.get(key)
            if cached is None or len(cached) < top_k:
                self.logger.debug("Cosine cache miss", extra={"shard": self.name, "top_k": top_k})
                return None
            self._cache.move_to_end(key)
        self.logger.debug("Cosine cache hit", extra={"shard": self.name, "top_k": top_k})
        return cached.truncate(top_k)

    def _cache_store(self, key: Tuple[int, bytes], result: QueryResult) -> None:
        with self._cache_lock:
            self._cache[key] = result
            self._cache.move_to_end(key)
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)

    def _partitions(self, total: int) -> List[Tuple[int, int]]:
        size = max(self.min_partition_size, math.ceil(total / self.max_workers))
        return [(start, min(start + size, total)) for start in range(0, total, size)]

    def _score(self, vector: np.ndarray, top_k: int, metric: DistanceMetric) -> QueryResult:
        # caller holds the read lock
        if not self._vectors:
            return QueryResult()
        matrix = self._stacked()
        distance_fn = METRIC_FUNCTIONS[metric]

        def rank_partition(bounds: Tuple[int, int]) -> _Ranked:
            start, stop = bounds
            distances = np.asarray(distance_fn(vector, matrix[start:stop]), dtype=np.float64)
            keys = 1.0 - distances
            positions = np.arange(start, stop)
            order = ranking_order(keys, positions)[:top_k]
            return positions[order], keys[order], distances[order]

        partitions = self._partitions(matrix.shape[0])
        if len(partitions) == 1:
            ranked = [rank_partition(partitions[0])]
        else:
            with ThreadPoolExecutor(
                max_workers=min(self.max_workers, len(partitions)),
                thread_name_prefix=f"shard-{self.name}",
            ) as executor:
                ranked = list(executor.map(rank_partition, partitions))

        positions = np.concatenate([item[0] for item in ranked])
        keys = np.concatenate([item[1] for item in ranked])
        distances = np.concatenate([item[2] for item in ranked])
        order = ranking_order(keys, positions)[:top_k]

        return QueryResult(
            documents=[self._documents[int(p)] for p in positions[order]],
            distances=[float(d) for d in distances[order]],
        )

    def _validate_loaded(
        self,
        matrix: np.ndarray,
        payload: ShardDocumentsFile,
        directory: Path,
    ) -> Tuple[List[np.ndarray], List[Document]]:
        if matrix.ndim != 2:
            raise PersistenceFormatError(f"Vectors in {directory} must be 2-D, got shape {matrix.shape}")
        if matrix.shape[0] != len(payload.documents):
            raise PersistenceFormatError(
                f"Shard {self.name!r} has {matrix.shape[0]} vectors but {len(payload.documents)} documents"
            )
        if matrix.shape[0] and matrix.shape[1] == 0:
            raise PersistenceFormatError(f"Shard {self.name!r} stores zero-length vectors")
        if payload.shard != self.name:
            self.logger.warning(
                "Loaded shard name differs from directory",
                extra={"shard": self.name, "stored_name": payload.shard},
            )

        vectors: List[np.ndarray] = []
        for row in matrix.astype(np.float64, copy=False):
            stored = np.array(row, dtype=np.float64)
            stored.flags.writeable = False
            vectors.append(stored)
        documents = [Document(text=record.text, id=record.id) for record in payload.documents]
        return vectors, documents


__all__ = [
    "Shard",
    "DEFAULT_TOP_K",
    "VECTORS_FILE",
    "DOCUMENTS_FILE",
    "default_worker_count",
    "validate_top_k",
    "ranking_order",
]
