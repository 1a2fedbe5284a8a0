from __future__ import annotations

from typing import List, Sequence

import pytest

from shardstore.embeddings import HashingEmbedder

DOCUMENTS = [
    "This is a test document about dogs",
    "This is a test document about cats",
    "This is a test document about fish",
    "This is a test document about birds",
    "This is a test document about dogs and cats",
    "This is a test document about cats and fish",
    "This is a test document about fish and birds",
    "This is a test document about birds and dogs",
    "This is a test document about dogs and cats and fish",
    "This is a test document about cats and fish and birds",
    "This is a test document about fish and birds and dogs",
    "This is a test document about birds and dogs and cats",
    "This is a test document about dogs and cats and fish and birds",
    "This is a test document about cats and fish and birds and dogs",
    "This is a test document about fish and birds and dogs and cats",
    "This is a test document about birds and dogs and cats and fish",
]


class RecordingEmbedder:
    """Hashing embedder that remembers every text it was asked to embed."""

    def __init__(self, dimension: int = 256) -> None:
        self.inner = HashingEmbedder(dimension)
        self.seen: List[str] = []
        self.single_calls = 0
        self.batch_calls = 0

    def get_vector(self, text: str) -> List[float]:
        self.single_calls += 1
        self.seen.append(text)
        return self.inner.get_vector(text)

    def get_vectors(self, texts: Sequence[str]) -> List[List[float]]:
        self.batch_calls += 1
        self.seen.extend(texts)
        return self.inner.get_vectors(texts)


@pytest.fixture
def documents() -> List[str]:
    return list(DOCUMENTS)


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder(256)


@pytest.fixture
def recording_embedder() -> RecordingEmbedder:
    return RecordingEmbedder()


@pytest.fixture
def database_root(tmp_path):
    return tmp_path / "TestDatabase"
