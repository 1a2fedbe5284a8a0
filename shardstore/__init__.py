"""
In-process sharded vector similarity store.
"""

from shardstore.embeddings import HashingEmbedder, LMStudioEmbedder, OpenAIEmbedder, get_embedder
from shardstore.errors import (
    DimensionMismatchError,
    DocumentNotFoundError,
    IndexOutOfRangeError,
    InvalidArgumentError,
    PersistenceFormatError,
    PersistenceNotFoundError,
    ShardStoreError,
)
from shardstore.vector_store import Database, DistanceMetric, Document, QueryResult, Shard, get_database

__version__ = "0.1.0"

__all__ = [
    "Database",
    "DimensionMismatchError",
    "DistanceMetric",
    "Document",
    "DocumentNotFoundError",
    "HashingEmbedder",
    "IndexOutOfRangeError",
    "InvalidArgumentError",
    "LMStudioEmbedder",
    "OpenAIEmbedder",
    "PersistenceFormatError",
    "PersistenceNotFoundError",
    "QueryResult",
    "Shard",
    "ShardStoreError",
    "get_database",
    "get_embedder",
]
