"""
Embedding providers and factories.
"""

from shardstore.config import settings
from shardstore.embeddings.base import Embedder
from shardstore.embeddings.client import LMStudioEmbedder, OpenAIEmbedder
from shardstore.embeddings.hashing import HashingEmbedder

DEFAULT_EMBEDDING_BACKEND = settings.embedding_backend


def get_embedder(backend: str | None = None) -> Embedder:
    """
    Factory to obtain the configured embedding provider.
    Supports "openai", "lmstudio" and "hashing".
    """
    backend = (backend or DEFAULT_EMBEDDING_BACKEND).lower()
    if backend == "openai":
        return OpenAIEmbedder()
    if backend == "lmstudio":
        return LMStudioEmbedder()
    if backend == "hashing":
        return HashingEmbedder()
    raise ValueError(f"Unsupported embedding backend: {backend}")


__all__ = [
    "DEFAULT_EMBEDDING_BACKEND",
    "Embedder",
    "HashingEmbedder",
    "LMStudioEmbedder",
    "OpenAIEmbedder",
    "get_embedder",
]
