"""Application configuration powered by Pydantic settings."""
from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    PROJECT_NAME: str = Field(default="RepoChat")
    VERSION: str = Field(default="0.1.0")
    LOG_LEVEL: str = Field(default="INFO")

    # Provider credentials are required; a missing key aborts startup.
    EMBEDDING_API_KEY: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("EMBEDDING_API_KEY", "OPENAI_API_KEY")
    )
    COMPLETION_API_KEY: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("COMPLETION_API_KEY", "OPENAI_API_KEY")
    )
    PINECONE_API_KEY: str = Field(..., min_length=1)
    PINECONE_INDEX_NAME: str = Field(..., min_length=1)

    PINECONE_INDEX_HOST: str | None = Field(default=None)
    PINECONE_CONTROLLER_URL: str = Field(default="https://api.pinecone.io")
    PINECONE_API_VERSION: str = Field(default="2024-07")
    PINECONE_TIMEOUT: float = Field(default=60.0)

    GITHUB_API_URL: str = Field(default="https://api.github.com")
    GITHUB_BRANCH: str | None = Field(default=None)
    GITHUB_MAX_CONCURRENCY: int = Field(default=2, ge=1)
    GITHUB_TIMEOUT: float = Field(default=60.0)

    EMBEDDING_MODEL_NAME: str = Field(default="text-embedding-3-small")
    EMBEDDING_BATCH_SIZE: int = Field(default=50, ge=1)
    EMBEDDING_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    EMBEDDING_TIMEOUT: float = Field(default=120.0)
    EMBEDDING_RETRY_BACKOFF: float = Field(default=1.0)

    COMPLETION_MODEL_NAME: str = Field(default="gpt-4o")
    COMPLETION_TIMEOUT: float = Field(default=120.0)

    CHUNK_SIZE: int = Field(default=1000)
    CHUNK_OVERLAP: int = Field(default=200)

    UPSERT_BATCH_SIZE: int = Field(default=100, ge=1)
    UPSERT_BATCH_DELAY: float = Field(default=0.05)

    INGEST_TIMEOUT: float = Field(default=600.0)

    RETRIEVAL_TOP_K: int = Field(default=5)
    SUMMARY_TOP_K: int = Field(default=100)
    CHAT_HISTORY_LIMIT: int = Field(default=12)

    FRONTEND_URL: str = Field(default="http://localhost:3000")

    RATE_LIMIT_CHAT: str = Field(default="30/minute")
    RATE_LIMIT_SUMMARIZE: str = Field(default="20/minute")
    RATE_LIMIT_INGESTION: str = Field(default="6/minute")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "populate_by_name": True,
    }


@lru_cache(maxsize=1)
def get_settings(**overrides: Any) -> Settings:
    """Return cached settings instance to avoid repeated parsing."""

    if overrides:
        return Settings(**overrides)
    return Settings()


settings = get_settings()
