"""Storage contract implemented by every backend.

Backends are chosen by configuration (see ``prompt_library.db.client``),
never by inheritance. A backend that cannot durably hold a collection
returns an empty list for it and treats writes as no-ops instead of raising,
so callers never need backend-specific branches.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from prompt_library.db.models import Document, DocumentKind, Prompt


@runtime_checkable
class Repository(Protocol):
    """Async storage contract for prompts, templates and collections."""

    async def init(self) -> None:
        """Establish the backend connection.

        Raises:
            BackendConnectionError: the backend cannot be reached.
            BlockedError: another session blocks opening/upgrading the store.
        """
        ...

    async def list(self, kind: DocumentKind) -> list[Document]:
        """All documents of one kind, in no particular order."""
        ...

    async def upsert(self, kind: DocumentKind, doc: Document) -> Document:
        """Persist ``doc``, replacing any document with the same id."""
        ...

    async def remove(self, kind: DocumentKind, id: str) -> None:
        """Delete by id; succeeds when nothing matches."""
        ...

    async def clear_all(self) -> None:
        """Empty every collection. Only used by destructive imports."""
        ...

    async def query_prompts(
        self,
        category: str | None = None,
        client: str | None = None,
    ) -> list[Prompt]:
        """Prompts whose category and client equal the given values."""
        ...

    async def close(self) -> None:
        ...
