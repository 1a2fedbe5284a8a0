"""
Vector store: shards, the multi-shard database and factories.
"""

from shardstore.config import settings
from shardstore.embeddings import Embedder, get_embedder
from shardstore.vector_store.base import Document, QueryResult
from shardstore.vector_store.database import MANIFEST_FILE, Database
from shardstore.vector_store.metrics import DistanceMetric
from shardstore.vector_store.shard import Shard

DEFAULT_DATABASE_PATH = settings.database_path


def get_database(embedder: Embedder | None = None, load_existing: bool = True) -> Database:
    """
    Factory to obtain a Database configured from settings.
    Loads the persisted store at the configured path when one exists.
    """
    database = Database(embedder or get_embedder())
    if load_existing and (database.path / MANIFEST_FILE).is_file():
        database.load()
    return database


__all__ = [
    "DEFAULT_DATABASE_PATH",
    "Database",
    "DistanceMetric",
    "Document",
    "QueryResult",
    "Shard",
    "get_database",
]
