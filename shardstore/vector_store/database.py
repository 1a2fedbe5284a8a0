"""
Database: named shards, document indexing, fan-out queries and persistence.
"""

from __future__ import annotations

import hashlib
import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple

import numpy as np

from shardstore.config import settings
from shardstore.embeddings.base import Embedder
from shardstore.errors import PersistenceNotFoundError
from shardstore.indexing.pipeline import (
    ProcessedText,
    Processor,
    collect_file_texts,
    embed_in_batches,
    process_text,
)
from shardstore.vector_store.base import Document, QueryResult, VectorLike, as_vector
from shardstore.vector_store.metrics import DistanceMetric, MetricInput, normalize_metric
from shardstore.vector_store.shard import (
    DEFAULT_TOP_K,
    Shard,
    default_worker_count,
    validate_top_k,
)

MANIFEST_FILE = "indexs.txt"

DEFAULT_DATABASE_PATH = settings.database_path
DEFAULT_AUTO_INDEX_COUNT = settings.auto_index_count

logger = logging.getLogger(__name__)


def shard_slot(text: str, shard_count: int) -> int:
    """Stable shard number for `text`: SHA-256 of its UTF-8 bytes modulo `shard_count`."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return int.from_bytes(digest, "big") % shard_count


@dataclass(frozen=True)
class _Candidate:
    score: float
    shard_order: int
    rank: int
    document: Document
    distance: float

    def sort_key(self) -> Tuple[bool, float, int, int]:
        missing = bool(np.isnan(self.score))
        return (missing, 0.0 if missing else -self.score, self.shard_order, self.rank)


class Database:
    """
    A set of named shards sharing one embedding provider.

    Construction creates either one default shard (auto-sharding off) or
    `auto_index_count` shards named "0".."N-1", to which documents without an
    explicit shard are routed by a hash of their text.
    """

    def __init__(
        self,
        embedder: Embedder,
        path: str | os.PathLike | None = None,
        auto_index_count: int | None = None,
        default_index_name: str | None = None,
        max_workers: int | None = None,
        min_partition_size: int | None = None,
        logger_: logging.Logger | None = None,
    ) -> None:
        self.embedder = embedder
        self.path = Path(path if path is not None else DEFAULT_DATABASE_PATH)
        self.auto_index_count = DEFAULT_AUTO_INDEX_COUNT if auto_index_count is None else auto_index_count
        if self.auto_index_count < 0:
            raise ValueError("auto_index_count must be >= 0")
        self.max_workers = max_workers or default_worker_count()
        self.min_partition_size = min_partition_size
        self.logger = logger_ or logger

        self._shards: Dict[str, Shard] = {}
        self._shards_lock = threading.RLock()

        if self.auto_index_count > 0:
            self.default_index_name = None
            for slot in range(self.auto_index_count):
                self.create_index(str(slot))
        else:
            self.default_index_name = (
                default_index_name or settings.default_index_name or self.path.name or "default"
            )
            self.create_index(self.default_index_name)

    # --- Shards ---
    @property
    def indexes(self) -> Mapping[str, Shard]:
        with self._shards_lock:
            return MappingProxyType(dict(self._shards))

    @property
    def count(self) -> int:
        return sum(len(shard) for shard in self._shard_list())

    def create_index(self, name: str) -> bool:
        with self._shards_lock:
            if name in self._shards:
                self.logger.warning("Index already exists", extra={"index": name})
                return False
            self._shards[name] = self._new_shard(name)
        self.logger.info("Index created", extra={"index": name})
        return True

    def delete_index(self, name: str) -> bool:
        with self._shards_lock:
            if self._shards.pop(name, None) is None:
                self.logger.warning("Index not found for deletion", extra={"index": name})
                return False
        self.logger.info("Index deleted", extra={"index": name})
        return True

    # --- Indexing ---
    def index_document(
        self,
        text: str,
        preprocessor: Processor | None = None,
        postprocessor: Processor | None = None,
        index_name: str | None = None,
    ) -> bool:
        """
        Embed and store one document.

        Returns False when the target shard cannot be resolved or a processor
        vetoes the text.
        """
        shard = self._resolve_shard(text, index_name)
        if shard is None:
            return False
        processed = process_text(text, preprocessor, postprocessor)
        if not processed.accepted:
            self.logger.debug(
                "Document vetoed",
                extra={
                    "index": shard.name,
                    "by": "preprocessor" if processed.vetoed_by_preprocessor else "postprocessor",
                },
            )
            return False
        vector = self.embedder.get_vector(processed.embed_text)
        shard.add(vector, Document(text=processed.stored_text))
        return True

    def index_documents(
        self,
        texts: Iterable[str],
        preprocessor: Processor | None = None,
        postprocessor: Processor | None = None,
        index_name: str | None = None,
        show_progress: bool | None = None,
    ) -> int:
        """
        Batch variant of `index_document` using the provider's `get_vectors`.

        Vetoed texts and texts whose shard cannot be resolved are skipped.
        Returns the number of documents stored.
        """
        processed = [process_text(text, preprocessor, postprocessor) for text in texts]
        return self._index_processed(
            [item for item in processed if item.accepted], index_name, show_progress
        )

    def index_document_file(
        self,
        path: str | os.PathLike,
        preprocessor: Processor | None = None,
        postprocessor: Processor | None = None,
        index_name: str | None = None,
        show_progress: bool | None = None,
    ) -> int:
        """
        Index every non-blank line of a UTF-8 text file as its own document.

        Processors receive `(line, path, line_number)`. A preprocessor veto skips
        the line; a postprocessor veto stops processing the rest of the file.
        Returns the number of documents stored.
        """
        if index_name is not None and self._get_shard(index_name) is None:
            self.logger.warning("Index not found", extra={"index": index_name})
            return 0
        accepted = collect_file_texts(path, preprocessor, postprocessor, logger_=self.logger)
        return self._index_processed(accepted, index_name, show_progress)

    # --- Queries ---
    def query(
        self,
        text: str,
        top_k: int = DEFAULT_TOP_K,
        metric: MetricInput = DistanceMetric.COSINE,
    ) -> QueryResult:
        """Embed `text` once and run `query_vector` with it."""
        metric = normalize_metric(metric)
        top_k = validate_top_k(top_k)
        vector = self.embedder.get_vector(text)
        return self.query_vector(vector, top_k, metric)

    def query_cosine_similarity(self, text: str, top_k: int = DEFAULT_TOP_K) -> QueryResult:
        return self.query(text, top_k, DistanceMetric.COSINE)

    def query_vector(
        self,
        vector: VectorLike,
        top_k: int = DEFAULT_TOP_K,
        metric: MetricInput = DistanceMetric.COSINE,
    ) -> QueryResult:
        """
        Query every shard concurrently and merge their local top-K lists.

        Merge order: score descending with NaN last, then shard iteration
        order, then each shard's own ranking.
        """
        metric = normalize_metric(metric)
        top_k = validate_top_k(top_k)
        query = as_vector(vector, "query_vector")
        shards = self._shard_list()
        if not shards:
            return QueryResult()

        started = time.time()
        if len(shards) == 1:
            partials = [shards[0].query(query, top_k, metric)]
        else:
            with ThreadPoolExecutor(
                max_workers=min(self.max_workers, len(shards)),
                thread_name_prefix="database-query",
            ) as executor:
                partials = list(executor.map(lambda shard: shard.query(query, top_k, metric), shards))

        candidates: List[_Candidate] = []
        for shard_order, partial in enumerate(partials):
            for rank, (document, distance) in enumerate(partial):
                candidates.append(_Candidate(1.0 - distance, shard_order, rank, document, distance))
        candidates.sort(key=_Candidate.sort_key)
        best = candidates[:top_k]

        self.logger.debug(
            "Query completed",
            extra={
                "metric": metric.value,
                "top_k": top_k,
                "shards": len(shards),
                "returned": len(best),
                "elapsed_sec": round(time.time() - started, 4),
            },
        )
        return QueryResult(
            documents=[item.document for item in best],
            distances=[item.distance for item in best],
        )

    # --- Persistence ---
    def save(self, path: str | os.PathLike | None = None) -> None:
        """Write the shard manifest, then let every shard save itself if changed."""
        root = Path(path) if path is not None else self.path
        root.mkdir(parents=True, exist_ok=True)
        shards = self._shard_list()

        manifest = "".join(f"{shard.name}\n" for shard in shards)
        (root / MANIFEST_FILE).write_text(manifest, encoding="utf-8")

        written = sum(1 for shard in shards if shard.save(root))
        self.logger.info(
            "Database saved",
            extra={"path": str(root), "shards": len(shards), "written": written},
        )

    def load(self, path: str | os.PathLike | None = None) -> None:
        """
        Load every shard listed in the manifest.

        Loaded shards replace same-named shards in memory; shards absent from
        the manifest are kept. Nothing is replaced unless all shards load.
        """
        root = Path(path) if path is not None else self.path
        manifest_path = root / MANIFEST_FILE
        if not manifest_path.is_file():
            raise PersistenceNotFoundError(f"Database manifest {manifest_path} not found.")

        names = [line.strip() for line in manifest_path.read_text(encoding="utf-8").splitlines()]
        loaded: Dict[str, Shard] = {}
        for name in names:
            if not name or name in loaded:
                continue
            shard = self._new_shard(name)
            shard.load(root)
            loaded[name] = shard

        with self._shards_lock:
            self._shards.update(loaded)
        self.logger.info(
            "Database loaded",
            extra={"path": str(root), "shards": len(loaded), "documents": sum(len(s) for s in loaded.values())},
        )

    # --- Internals ---
    def _new_shard(self, name: str) -> Shard:
        return Shard(
            name,
            max_workers=self.max_workers,
            min_partition_size=self.min_partition_size,
            logger_=self.logger,
        )

    def _shard_list(self) -> List[Shard]:
        with self._shards_lock:
            return list(self._shards.values())

    def _get_shard(self, name: str) -> Shard | None:
        with self._shards_lock:
            return self._shards.get(name)

    def _resolve_shard(self, text: str, index_name: str | None) -> Shard | None:
        if index_name is not None:
            name = index_name
        elif self.auto_index_count > 0:
            name = str(shard_slot(text, self.auto_index_count))
        else:
            name = self.default_index_name
        shard = self._get_shard(name)
        if shard is None:
            self.logger.warning("Index not found", extra={"index": name})
        return shard

    def _index_processed(
        self,
        processed: List[ProcessedText],
        index_name: str | None,
        show_progress: bool | None,
    ) -> int:
        routed: List[Tuple[Shard, ProcessedText]] = []
        for item in processed:
            shard = self._resolve_shard(item.source_text, index_name)
            if shard is not None:
                routed.append((shard, item))
        if not routed:
            return 0

        started = time.time()
        vectors = embed_in_batches(
            [item.embed_text for _, item in routed],
            self.embedder,
            batch_size=settings.embed_batch_size,
            show_progress=settings.show_progress if show_progress is None else show_progress,
        )
        for (shard, item), vector in zip(routed, vectors):
            shard.add(vector, Document(text=item.stored_text))

        self.logger.info(
            "Indexed documents",
            extra={"count": len(routed), "elapsed_sec": round(time.time() - started, 2)},
        )
        return len(routed)


__all__ = ["Database", "MANIFEST_FILE", "shard_slot"]
