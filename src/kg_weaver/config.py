"""Configuration loaded from environment / ``.env``."""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmbeddingSettings(BaseModel):
    """Connection details for the OpenAI-compatible embedding endpoint."""

    api_key: str = Field(default="", description="Bearer credential for the embedding service")
    base_url: str = Field(
        default="",
        description="Base URL of the embedding API, e.g. 'https://api.example.com/v1'",
    )
    model: str = "text-embedding-v3"
    dimensions: int | None = Field(default=None, description="Requested vector size, if the model supports it")
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    max_retries: int = Field(default=3, ge=1, description="Attempts per call for transient failures")


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)

    # Ingestion
    concurrency_limit: int = Field(default=5, ge=1, description="Max in-flight embedding calls")
    chunk_size: int = Field(default=512, gt=0, description="Max characters per chunk")
    chunk_overlap: int = Field(default=8, ge=0, description="Words of index overlap between chunks")

    # Retrieval
    similarity_threshold: float = Field(default=0.2, description="Minimum cosine score kept by queries")

    # Storage
    storage_url: str = Field(
        default="sqlite:///kg_weaver.db",
        description="SQLAlchemy URL, or 'memory://' for the in-process backend",
    )
    reference_table: str = "reference_documents"
    chunk_table: str = "chunks"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )


def load_settings(**overrides) -> Settings:  # noqa: ANN003
    """Build a fresh :class:`Settings`; keyword *overrides* win over the environment."""
    return Settings(**overrides)
