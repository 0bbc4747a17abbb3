"""Typed failures raised by the storage backends and the similarity index."""

from __future__ import annotations


class RepositoryError(Exception):
    """Base class for storage backend failures."""


class BackendConnectionError(RepositoryError, ConnectionError):
    """The backend could not be reached (permission denied, corrupt schema, ...)."""


class BlockedError(RepositoryError):
    """The local database is locked by another session.

    Recoverable: the user closes the other session and retries.
    """

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        message = (
            f"Database '{path}' is locked by another session. "
            "Close other running prompt-library sessions and try again."
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class NotConnectedError(RepositoryError):
    """A vault write was attempted with no directory selected."""

    def __init__(self, operation: str = "write") -> None:
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: no vault directory selected. "
            "Connect a directory first (prompt-library vault connect PATH)."
        )


class EmbeddingUnavailable(RuntimeError):
    """The embedding model has not finished loading (or failed to load)."""
