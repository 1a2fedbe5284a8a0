from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

DOCUMENTS_FORMAT_VERSION = 1


class DocumentRecord(BaseModel):
    """Persisted form of one stored document."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Globally unique document id")
    text: str = Field(..., description="Stored document text")


class ShardDocumentsFile(BaseModel):
    """Contents of `documents.json`, positionally paired with `vectors.npy`."""

    format_version: Literal[1] = Field(default=DOCUMENTS_FORMAT_VERSION)
    shard: str = Field(..., min_length=1, description="Name of the owning shard")
    documents: List[DocumentRecord] = Field(default_factory=list)


__all__ = ["DOCUMENTS_FORMAT_VERSION", "DocumentRecord", "ShardDocumentsFile"]
