"""
OpenAI-compatible embedding providers.
"""

from __future__ import annotations

import threading
from typing import List, Sequence

from openai import OpenAI

from shardstore.config import settings

DEFAULT_EMBEDDING_MODEL = settings.embedding_model_name
DEFAULT_EMBED_BATCH_SIZE = settings.embed_batch_size
DEFAULT_LMSTUDIO_URL = settings.lmstudio_base_url
DEFAULT_LMSTUDIO_MODEL = settings.lmstudio_model_name

# LM Studio ignores the key, but the SDK refuses to build a client without one
LMSTUDIO_PLACEHOLDER_KEY = "lm-studio"


class OpenAIEmbedder:
    """Embeds text with the OpenAI embeddings endpoint and counts tokens per instance."""

    def __init__(
        self,
        model: str = DEFAULT_EMBEDDING_MODEL,
        batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.batch_size = batch_size
        if client is None:
            api_key = settings.openai_api_key.get_secret_value() if settings.openai_api_key else None
            client = OpenAI(api_key=api_key)
        self.client = client
        self._tokens_lock = threading.Lock()
        self._total_tokens = 0

    @property
    def total_tokens(self) -> int:
        """Tokens billed to this instance since construction or the last reset."""
        with self._tokens_lock:
            return self._total_tokens

    def reset_token_count(self) -> None:
        with self._tokens_lock:
            self._total_tokens = 0

    def get_vectors(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []

        embeddings: List[List[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = list(texts[i : i + self.batch_size])
            response = self.client.embeddings.create(model=self.model, input=batch)
            self._record_usage(response)
            ordered = sorted(response.data, key=lambda item: item.index)
            embeddings.extend([[float(v) for v in item.embedding] for item in ordered])
        return embeddings

    def get_vector(self, text: str) -> List[float]:
        vectors = self.get_vectors([text])
        return vectors[0] if vectors else []

    def _record_usage(self, response) -> None:
        usage = getattr(response, "usage", None)
        tokens = getattr(usage, "total_tokens", None) or 0
        with self._tokens_lock:
            self._total_tokens += tokens


class LMStudioEmbedder(OpenAIEmbedder):
    """Embeds text with a local LM Studio server through its OpenAI-compatible API."""

    def __init__(
        self,
        model: str = DEFAULT_LMSTUDIO_MODEL,
        base_url: str = DEFAULT_LMSTUDIO_URL,
        batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
        client: OpenAI | None = None,
    ) -> None:
        self.base_url = base_url
        super().__init__(
            model=model,
            batch_size=batch_size,
            client=client or OpenAI(base_url=base_url, api_key=LMSTUDIO_PLACEHOLDER_KEY),
        )


__all__ = [
    "OpenAIEmbedder",
    "LMStudioEmbedder",
    "DEFAULT_EMBEDDING_MODEL",
    "DEFAULT_EMBED_BATCH_SIZE",
]
