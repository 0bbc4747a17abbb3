"""Storage backend selection."""

from __future__ import annotations

from functools import lru_cache

import structlog

from prompt_library.config import Settings, get_settings
from prompt_library.db.repository import Repository
from prompt_library.db.sqlite_repo import LocalDatabaseRepository
from prompt_library.db.vault_repo import VaultRepository

logger = structlog.get_logger()


def create_repository(settings: Settings) -> Repository:
    """Build the backend named by ``settings.storage_mode``."""
    if settings.storage_mode == "local":
        return LocalDatabaseRepository(settings.database_path, busy_timeout=settings.db_busy_timeout)
    if settings.storage_mode == "vault":
        return VaultRepository(settings.vault_path, batch_size=settings.vault_batch_size)
    raise ValueError(f"Unknown storage mode: {settings.storage_mode!r}")


@lru_cache
def get_repository() -> Repository:
    """Get the cached repository for the configured storage mode (not yet initialised)."""
    settings = get_settings()
    repo = create_repository(settings)
    logger.info("storage.selected", mode=settings.storage_mode)
    return repo
