"""Configuration model for the indexing engine and its adapters."""

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, validator

from ..indexer_logging import get_logger

logger = get_logger()

EMBEDDING_PROVIDERS = ("ollama", "openai", "voyage")

DEFAULT_EMBEDDING_MODELS = {
    "ollama": "nomic-embed-text:v1.5",
    "openai": "text-embedding-3-small",
    "voyage": "voyage-3-lite",
}

STATE_FILE_NAME = ".indexer-state.json"
STATS_FILE_NAME = ".indexer-metadata.json"


class IndexerConfig(BaseModel):
    """Engine configuration with validation."""

    # Vector store
    qdrant_url: str = Field(default="http://localhost:6333")
    qdrant_api_key: str = Field(default="")
    qdrant_timeout: float = Field(default=30.0, gt=0)
    qdrant_retries: int = Field(default=3, ge=1, le=10)
    collection_name: str = Field(default="codebase")

    # Embeddings
    embedding_provider: str = Field(default="ollama")
    embedding_model: str = Field(default="")
    embedding_dimensions: int = Field(default=768, ge=1, le=8192)
    embedding_retries: int = Field(default=3, ge=1, le=10)
    strict_dimensions: bool = Field(default=False)
    openai_api_key: str = Field(default="")
    voyage_api_key: str = Field(default="")
    ollama_host: str = Field(default="http://localhost:11434")

    # Indexing behavior
    batch_size: int = Field(default=10, ge=1, le=100)
    max_concurrency: int = Field(default=5, ge=1, le=20)
    incremental_enabled: bool = Field(default=True)
    persist_metadata: bool = Field(default=True)
    validation_enabled: bool = Field(default=True)

    # Freshness and purge
    ttl_seconds: float = Field(default=7 * 24 * 3600, gt=0)
    purge_interval_seconds: float = Field(default=3600, ge=0)
    search_overfetch_factor: int = Field(default=3, ge=1, le=20)

    # Watcher
    debounce_seconds: float = Field(default=1.0, ge=0)

    # Paths
    base_directory: Path = Field(default_factory=Path.cwd)
    exclusion_config_path: Path | None = Field(default=None)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text")
    log_file: Path | None = Field(default=None)

    @validator("embedding_provider")
    def validate_provider(cls, v: Any) -> str:
        provider = str(v).strip().lower()
        if provider not in EMBEDDING_PROVIDERS:
            raise ValueError(
                f"Unknown embedding provider '{v}', expected one of {EMBEDDING_PROVIDERS}"
            )
        return provider

    @validator("log_level")
    def validate_log_level(cls, v: Any) -> str:
        level = str(v).strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @validator("log_format")
    def validate_log_format(cls, v: Any) -> str:
        if v not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
        return v

    @property
    def effective_embedding_model(self) -> str:
        return self.embedding_model or DEFAULT_EMBEDDING_MODELS[self.embedding_provider]

    @property
    def state_file(self) -> Path:
        return Path(self.base_directory) / STATE_FILE_NAME

    @property
    def stats_file(self) -> Path:
        return Path(self.base_directory) / STATS_FILE_NAME

    @classmethod
    def from_env(cls) -> "IndexerConfig":
        """Create config with environment variable overrides."""
        from .config_loader import read_env_overrides

        return cls(**read_env_overrides(os.environ))
