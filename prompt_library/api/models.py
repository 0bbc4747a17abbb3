"""Pydantic request/response models for the API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from prompt_library.core.embeddings import is_stale
from prompt_library.core.search import RankingMode, SearchHit
from prompt_library.db.models import Collection, CollectionFilters, Prompt, PromptStatus, Template, Version

# --- Prompts ---


class PromptCreate(BaseModel):
    """Create a new prompt."""

    title: str = Field("New Prompt", max_length=300)
    description: str = ""
    prompt_text: str = ""
    tags: str = ""
    status: PromptStatus = PromptStatus.DRAFT
    notes: str = ""
    category: str = ""
    client: str = ""


class PromptUpdate(BaseModel):
    """Update a prompt; omitted fields are unchanged."""

    title: str | None = Field(None, max_length=300)
    description: str | None = None
    prompt_text: str | None = None
    tags: str | None = None
    status: PromptStatus | None = None
    notes: str | None = None
    category: str | None = None
    client: str | None = None


class PromptResponse(BaseModel):
    """Prompt response. The vector itself is not returned, only whether it is current."""

    id: str
    title: str
    description: str
    prompt_text: str
    tags: str
    status: PromptStatus
    notes: str
    category: str
    client: str
    date_created: str
    versions: list[Version]
    indexed: bool

    @classmethod
    def from_prompt(cls, prompt: Prompt) -> PromptResponse:
        data = prompt.model_dump(exclude={"embedding", "embedding_hash"})
        return cls(**data, indexed=not is_stale(prompt))


# --- Versions ---


class VersionRestoreRequest(BaseModel):
    version_no: int = Field(..., ge=1)


# --- Search ---


class SearchHitResponse(BaseModel):
    prompt: PromptResponse
    score: float | None = None

    @classmethod
    def from_hit(cls, hit: SearchHit) -> SearchHitResponse:
        return cls(prompt=PromptResponse.from_prompt(hit.prompt), score=hit.score)


class SearchResponse(BaseModel):
    query: str
    mode: RankingMode
    semantic_state: str
    results: list[SearchHitResponse]


class FacetsResponse(BaseModel):
    categories: list[str]
    clients: list[str]
    statuses: list[str]


class SemanticStatusResponse(BaseModel):
    state: str
    min_score: float
    error: str | None = None


# --- Templates ---


class TemplateCreate(BaseModel):
    description: str = "New Template"
    template_text: str = ""
    notes: str = ""
    is_favourite: bool = False
    order: int = 0


class TemplateUpdate(BaseModel):
    description: str | None = None
    template_text: str | None = None
    notes: str | None = None
    is_favourite: bool | None = None
    order: int | None = None


TemplateResponse = Template


# --- Collections ---


class CollectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    filters: CollectionFilters


CollectionResponse = Collection


# --- Backup / vault ---


class ImportResponse(BaseModel):
    prompts: int
    templates: int


class VaultConnectRequest(BaseModel):
    path: str
