"""
Store configuration loaded from environment variables.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised store settings."""

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    openai_api_key: SecretStr | None = Field(default=None, alias="OPENAI_API_KEY")
    embedding_backend: str = Field(default="openai", alias="EMBEDDING_BACKEND")
    embedding_model_name: str = Field(default="text-embedding-3-small", alias="EMBEDDING_MODEL_NAME")
    embed_batch_size: int = Field(default=64, gt=0, alias="EMBED_BATCH_SIZE")

    lmstudio_base_url: str = Field(default="http://localhost:1234/v1", alias="LMSTUDIO_BASE_URL")
    lmstudio_model_name: str = Field(
        default="CompendiumLabs/bge-large-en-v1.5-gguf", alias="LMSTUDIO_MODEL_NAME"
    )

    hashing_dimension: int = Field(default=256, gt=0, alias="HASHING_DIMENSION")

    database_path: str = Field(default="./data/database", alias="DATABASE_PATH")
    auto_index_count: int = Field(default=0, ge=0, alias="AUTO_INDEX_COUNT")
    default_index_name: str | None = Field(default=None, alias="DEFAULT_INDEX_NAME")

    default_top_k: int = Field(default=5, gt=0, alias="DEFAULT_TOP_K")
    query_workers: int | None = Field(default=None, gt=0, alias="QUERY_WORKERS")
    min_partition_size: int = Field(default=2048, gt=0, alias="MIN_PARTITION_SIZE")
    query_cache_size: int = Field(default=128, gt=0, alias="QUERY_CACHE_SIZE")

    show_progress: bool = Field(default=False, alias="SHOW_PROGRESS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


settings = Settings()


def setup_logging(level: str | int | None = None) -> logging.Logger:
    """
    Configure root handlers for applications embedding the store and set the
    `shardstore` logger to `level` (defaults to `LOG_LEVEL`).
    """
    resolved = level if level is not None else settings.log_level
    if isinstance(resolved, str):
        resolved = resolved.upper()
    logging.basicConfig(format="[%(asctime)s] [%(levelname)s] %(name)s - %(message)s")
    package_logger = logging.getLogger("shardstore")
    package_logger.setLevel(resolved)
    return package_logger


def public_settings() -> Dict[str, Any]:
    """
    Return settings without secrets for safe logging/inspection.
    """
    return settings.model_dump(
        exclude={"openai_api_key"},
        exclude_none=True,
    )


__all__ = ["Settings", "settings", "setup_logging", "public_settings"]
