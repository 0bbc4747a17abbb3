"""Document models shared by every storage backend.

Prompts, templates and collections are stored as whole JSON documents keyed
by ``id``. These models are both the in-memory shape used by the
application layer and the on-disk shape written by the vault backend.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def generate_id() -> str:
    """New opaque document id."""
    return uuid4().hex


_ID_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.-]*")


def is_valid_id(value: str) -> bool:
    """True when ``value`` can be embedded in a filename as-is."""
    return bool(_ID_PATTERN.fullmatch(value))


def utc_now() -> str:
    """Current timestamp in ISO-8601."""
    return datetime.now(timezone.utc).isoformat()


class DocumentKind(str, Enum):
    """The three independent collections of the storage contract."""

    PROMPTS = "prompts"
    TEMPLATES = "templates"
    COLLECTIONS = "collections"


class PromptStatus(str, Enum):
    DRAFT = "draft"
    LIVE = "live"
    ARCHIVED = "archived"


class Version(BaseModel):
    """Immutable snapshot of a prompt's body and notes."""

    model_config = ConfigDict(frozen=True)

    version_no: int = Field(..., ge=1)
    prompt_text: str = ""
    notes: str = ""
    date_created: str = Field(default_factory=utc_now)


class Prompt(BaseModel):
    """A reusable prompt.

    ``embedding`` is only meaningful while ``embedding_hash`` matches the
    digest of the current title/description/notes/body text; see
    ``prompt_library.core.embeddings.is_stale``.
    """

    id: str = Field(default_factory=generate_id)
    title: str = "New Prompt"
    description: str = ""
    prompt_text: str = ""
    tags: str = ""
    status: PromptStatus = PromptStatus.DRAFT
    notes: str = ""
    category: str = ""
    client: str = ""
    date_created: str = Field(default_factory=utc_now)
    versions: list[Version] = Field(default_factory=list)
    embedding: list[float] | None = None
    embedding_hash: str | None = None

    def clear_embedding(self) -> None:
        self.embedding = None
        self.embedding_hash = None


class Template(BaseModel):
    """A prompt template with ``${name}`` placeholders."""

    id: str = Field(default_factory=generate_id)
    description: str = "New Template"
    template_text: str = ""
    notes: str = ""
    is_favourite: bool = False
    order: int = 0


class CollectionFilters(BaseModel):
    """Saved filter predicate; every field is optional."""

    search: str = ""
    category: str = ""
    client: str = ""
    status: str = ""

    def is_empty(self) -> bool:
        return not (self.search or self.category or self.client or self.status)


class Collection(BaseModel):
    """A named, persisted filter. Re-evaluated every time it is applied."""

    id: str = Field(default_factory=generate_id)
    name: str
    filters: CollectionFilters = Field(default_factory=CollectionFilters)


Document = Prompt | Template | Collection

DOCUMENT_MODELS: dict[DocumentKind, type[BaseModel]] = {
    DocumentKind.PROMPTS: Prompt,
    DocumentKind.TEMPLATES: Template,
    DocumentKind.COLLECTIONS: Collection,
}
