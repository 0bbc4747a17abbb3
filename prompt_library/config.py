"""Application configuration — reads from environment variables and an optional .env file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HOME = Path.home() / ".prompt-library"


class Settings(BaseSettings):
    """Application settings, overridable with PROMPT_LIBRARY_* env vars."""

    storage_mode: Literal["local", "vault"] = "local"
    database_path: Path = DEFAULT_HOME / "library.db"
    db_busy_timeout: float = 1.0
    vault_path: Path | None = None
    vault_batch_size: int = 50

    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    semantic_min_score: float = 0.25

    port: int = 8400
    log_level: str = "INFO"
    log_format: Literal["auto", "console", "json"] = "auto"

    model_config = SettingsConfigDict(
        env_prefix="PROMPT_LIBRARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
