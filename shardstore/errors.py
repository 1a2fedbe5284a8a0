"""
Exception types raised by shards and databases.
"""

from __future__ import annotations


class ShardStoreError(Exception):
    """Base class for all store failures."""


class InvalidArgumentError(ShardStoreError, ValueError):
    """A caller passed a missing or malformed argument."""


class DimensionMismatchError(InvalidArgumentError):
    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Vector dimension mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class DocumentNotFoundError(ShardStoreError, LookupError):
    """Lookup by document or vector found no stored entry."""


class IndexOutOfRangeError(ShardStoreError, IndexError):
    """Positional removal outside the stored range."""


class PersistenceNotFoundError(ShardStoreError, FileNotFoundError):
    """A persisted directory, manifest or artifact is missing."""


class PersistenceFormatError(ShardStoreError):
    """Persisted artifacts are unreadable, inconsistent or of an unknown version."""


__all__ = [
    "ShardStoreError",
    "InvalidArgumentError",
    "DimensionMismatchError",
    "DocumentNotFoundError",
    "IndexOutOfRangeError",
    "PersistenceNotFoundError",
    "PersistenceFormatError",
]
