"""Prompt Registry — the application layer over storage and search.

Every prompt write goes through ``persist``, which (1) brings the prompt's
vector up to date with its text and then (2) hands it to the active storage
backend. Search reads persisted prompts back and ranks them with the hybrid
engine.
"""

from __future__ import annotations

import asyncio
from functools import lru_cache
from pathlib import Path
from typing import Any

import structlog

from prompt_library.config import get_settings
from prompt_library.core import mapper
from prompt_library.core.collections import create_collection, search_filters
from prompt_library.core.embeddings import (
    SentenceTransformerProvider,
    SimilarityIndex,
    embedding_text,
    is_stale,
)
from prompt_library.core.search import HybridSearchEngine, RankingMode, SearchFilters, SearchHit, SortKey
from prompt_library.core.templates import duplicate_template, filter_templates, sort_templates
from prompt_library.core.vcs import VersionControl
from prompt_library.db.client import get_repository
from prompt_library.db.models import (
    Collection,
    CollectionFilters,
    DocumentKind,
    Prompt,
    PromptStatus,
    Template,
    Version,
    generate_id,
    utc_now,
)
from prompt_library.db.repository import Repository
from prompt_library.db.vault_repo import VaultRepository

logger = structlog.get_logger()

EDITABLE_PROMPT_FIELDS = frozenset(
    {"title", "description", "prompt_text", "tags", "status", "notes", "category", "client"}
)
EDITABLE_TEMPLATE_FIELDS = frozenset({"description", "template_text", "notes", "is_favourite", "order"})


class PromptRegistry:
    """Manages prompts, templates and collections on one storage backend."""

    def __init__(
        self,
        repo: Repository,
        index: SimilarityIndex,
        engine: HybridSearchEngine | None = None,
        replace_on_import: bool = True,
    ) -> None:
        self.repo = repo
        self.index = index
        self.engine = engine or HybridSearchEngine(index)
        self.vcs = VersionControl()
        self.replace_on_import = replace_on_import
        self._indexing_task: asyncio.Task | None = None
        self._write_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Prompts
    # -------------------------------------------------------------------------

    async def persist(self, prompt: Prompt) -> Prompt:
        """Refresh the prompt's vector if its text changed, then store it."""
        if is_stale(prompt, self.index.dimension):
            if self.index.is_ready:
                try:
                    await self.index.index_prompt(prompt)
                except Exception as e:
                    logger.warning("prompt.embedding_failed", id=prompt.id, error=str(e))
                    prompt.clear_embedding()
            else:
                prompt.clear_embedding()

        async with self._write_lock:
            await self.repo.upsert(DocumentKind.PROMPTS, prompt)
        logger.info("prompt.persisted", id=prompt.id, indexed=prompt.embedding is not None)
        return prompt

    async def create_prompt(self, **fields: Any) -> Prompt:
        unknown = set(fields) - EDITABLE_PROMPT_FIELDS
        if unknown:
            raise ValueError(f"Unknown prompt fields: {sorted(unknown)}")
        prompt = Prompt(**fields)
        await self.persist(prompt)
        logger.info("prompt.created", id=prompt.id, title=prompt.title)
        return prompt

    async def list_prompts(self) -> list[Prompt]:
        return await self.repo.list(DocumentKind.PROMPTS)

    async def get_prompt(self, id: str) -> Prompt | None:
        return next((p for p in await self.list_prompts() if p.id == id), None)

    async def update_prompt(self, id: str, **fields: Any) -> Prompt | None:
        """Replace the given fields; omitted or None fields are left as they are."""
        unknown = set(fields) - EDITABLE_PROMPT_FIELDS
        if unknown:
            raise ValueError(f"Unknown prompt fields: {sorted(unknown)}")
        prompt = await self.get_prompt(id)
        if prompt is None:
            return None
        changes = {k: v for k, v in fields.items() if v is not None}
        updated = Prompt.model_validate({**prompt.model_dump(), **changes})
        await self.persist(updated)
        logger.info("prompt.updated", id=id, fields=sorted(changes))
        return updated

    async def duplicate_prompt(self, id: str) -> Prompt | None:
        source = await self.get_prompt(id)
        if source is None:
            return None
        copy = source.model_copy(
            update={
                "id": generate_id(),
                "title": f"COPY {source.title or 'Untitled'}",
                "status": PromptStatus.DRAFT,
                "date_created": utc_now(),
                "versions": [],
                "embedding": None,
                "embedding_hash": None,
            },
            deep=True,
        )
        await self.persist(copy)
        logger.info("prompt.duplicated", source=id, id=copy.id)
        return copy

    async def remove(self, id: str) -> None:
        async with self._write_lock:
            await self.repo.remove(DocumentKind.PROMPTS, id)
        logger.info("prompt.removed", id=id)

    async def facets(self) -> dict[str, list[str]]:
        """Sorted distinct non-empty categories, clients and statuses."""
        prompts = await self.list_prompts()
        return {
            "categories": sorted({p.category for p in prompts if p.category}),
            "clients": sorted({p.client for p in prompts if p.client}),
            "statuses": sorted({p.status.value for p in prompts}),
        }

    # -------------------------------------------------------------------------
    # Versions
    # -------------------------------------------------------------------------

    async def commit_version(self, id: str) -> Version | None:
        prompt = await self.get_prompt(id)
        if prompt is None:
            return None
        version = self.vcs.commit(prompt)
        await self.persist(prompt)
        return version

    async def history(self, id: str, limit: int | None = None) -> list[Version] | None:
        prompt = await self.get_prompt(id)
        if prompt is None:
            return None
        return self.vcs.history(prompt, limit)

    async def get_version(self, id: str, version_no: int) -> Version | None:
        prompt = await self.get_prompt(id)
        if prompt is None:
            return None
        return self.vcs.get_version(prompt, version_no)

    async def restore_version(self, id: str, version_no: int) -> Prompt | None:
        """Bring back a snapshot's text. None when the prompt or version is missing."""
        prompt = await self.get_prompt(id)
        if prompt is None or self.vcs.restore(prompt, version_no) is None:
            return None
        return await self.persist(prompt)

    # -------------------------------------------------------------------------
    # Search / indexing
    # -------------------------------------------------------------------------

    async def search(
        self,
        query: str = "",
        filters: SearchFilters | None = None,
        mode: RankingMode | str = RankingMode.SEMANTIC,
        sort: SortKey | str = SortKey.DATE_DESC,
        min_score: float | None = None,
        top_k: int | None = None,
    ) -> list[SearchHit]:
        filters = filters or SearchFilters()
        candidates = await self.repo.query_prompts(category=filters.category, client=filters.client)
        return await self.engine.search(
            candidates,
            query=query,
            filters=filters,
            mode=mode,
            sort=sort,
            min_score=min_score,
            top_k=top_k,
        )

    async def reindex_stale(self) -> int:
        """Recompute and store vectors for every stale prompt, one at a time.

        A failure on one prompt is logged and skipped. A prompt that was
        edited or removed while its vector was being computed is left alone,
        since ``persist`` already stored the newer copy. Returns the number
        of prompts reindexed.
        """
        if not self.index.is_ready:
            return 0
        dimension = self.index.dimension
        stale = [p for p in await self.list_prompts() if is_stale(p, dimension) and embedding_text(p)]
        if not stale:
            return 0

        logger.info("semantic.reindex_started", stale=len(stale))
        done = 0
        for prompt in stale:
            snapshot = prompt.model_dump()
            try:
                await self.index.index_prompt(prompt)
                async with self._write_lock:
                    current = await self.get_prompt(prompt.id)
                    if current is None or current.model_dump() != snapshot:
                        logger.debug("semantic.reindex_skipped", id=prompt.id)
                        continue
                    await self.repo.upsert(DocumentKind.PROMPTS, prompt)
            except Exception as e:
                logger.warning("semantic.reindex_failed", id=prompt.id, error=str(e))
                continue
            done += 1
        logger.info("semantic.reindex_complete", reindexed=done, failed=len(stale) - done)
        return done

    def start_background_indexing(self) -> asyncio.Task:
        """Load the model and reindex stale prompts without blocking callers."""
        if self._indexing_task is None or self._indexing_task.done():
            self._indexing_task = asyncio.create_task(self._background_indexing())
        return self._indexing_task

    async def _background_indexing(self) -> int:
        if not await self.index.load():
            return 0
        return await self.reindex_stale()

    async def stop(self) -> None:
        task, self._indexing_task = self._indexing_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------

    async def list_templates(self) -> list[Template]:
        """All templates, favourites first then by order."""
        return sort_templates(await self.repo.list(DocumentKind.TEMPLATES))

    async def search_templates(self, query: str) -> list[Template]:
        """Templates whose description or text contains ``query``, in list order."""
        return filter_templates(await self.list_templates(), query)

    async def get_template(self, id: str) -> Template | None:
        return next((t for t in await self.repo.list(DocumentKind.TEMPLATES) if t.id == id), None)

    async def save_template(self, template: Template) -> Template:
        await self.repo.upsert(DocumentKind.TEMPLATES, template)
        logger.info("template.saved", id=template.id)
        return template

    async def create_template(self, **fields: Any) -> Template:
        unknown = set(fields) - EDITABLE_TEMPLATE_FIELDS
        if unknown:
            raise ValueError(f"Unknown template fields: {sorted(unknown)}")
        return await self.save_template(Template(**fields))

    async def update_template(self, id: str, **fields: Any) -> Template | None:
        unknown = set(fields) - EDITABLE_TEMPLATE_FIELDS
        if unknown:
            raise ValueError(f"Unknown template fields: {sorted(unknown)}")
        template = await self.get_template(id)
        if template is None:
            return None
        changes = {k: v for k, v in fields.items() if v is not None}
        return await self.save_template(Template.model_validate({**template.model_dump(), **changes}))

    async def duplicate_template(self, id: str) -> Template | None:
        template = await self.get_template(id)
        if template is None:
            return None
        return await self.save_template(duplicate_template(template))

    async def remove_template(self, id: str) -> None:
        await self.repo.remove(DocumentKind.TEMPLATES, id)
        logger.info("template.removed", id=id)

    # -------------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------------

    async def save_collection(self, name: str, filters: CollectionFilters) -> Collection:
        collection = create_collection(name, filters)
        await self.repo.upsert(DocumentKind.COLLECTIONS, collection)
        logger.info("collection.saved", id=collection.id, name=collection.name)
        return collection

    async def list_collections(self) -> list[Collection]:
        return await self.repo.list(DocumentKind.COLLECTIONS)

    async def get_collection(self, id: str) -> Collection | None:
        return next((c for c in await self.list_collections() if c.id == id), None)

    async def remove_collection(self, id: str) -> None:
        await self.repo.remove(DocumentKind.COLLECTIONS, id)
        logger.info("collection.removed", id=id)

    async def apply_collection(
        self,
        id: str,
        mode: RankingMode | str = RankingMode.SEMANTIC,
        sort: SortKey | str = SortKey.DATE_DESC,
    ) -> list[SearchHit] | None:
        """Re-evaluate a saved collection against the current prompts."""
        collection = await self.get_collection(id)
        if collection is None:
            return None
        return await self.search(
            query=collection.filters.search,
            filters=search_filters(collection.filters),
            mode=mode,
            sort=sort,
        )

    # -------------------------------------------------------------------------
    # Backup import / export
    # -------------------------------------------------------------------------

    async def export_backup(self) -> dict[str, list[dict[str, Any]]]:
        prompts = await self.list_prompts()
        templates = await self.repo.list(DocumentKind.TEMPLATES)
        return {
            "prompts": [mapper.prompt_to_export(p) for p in prompts],
            "templates": [mapper.template_to_export(t) for t in templates],
        }

    async def import_backup(self, data: dict[str, Any]) -> dict[str, int]:
        """Restore a backup. In local mode the store is emptied first.

        Raises:
            ValueError: the data has neither ``prompts`` nor ``templates``.
        """
        if not isinstance(data, dict) or ("prompts" not in data and "templates" not in data):
            raise ValueError("Invalid backup format: expected 'prompts' and/or 'templates'")

        prompts = [mapper.prompt_from_import(p) for p in data.get("prompts") or []]
        templates = [mapper.template_from_import(t) for t in data.get("templates") or []]

        if self.replace_on_import:
            await self.repo.clear_all()
        for prompt in prompts:
            await self.persist(prompt)
        for template in templates:
            await self.repo.upsert(DocumentKind.TEMPLATES, template)

        logger.info("backup.imported", prompts=len(prompts), templates=len(templates))
        return {"prompts": len(prompts), "templates": len(templates)}

    async def import_prompt(self, data: dict[str, Any]) -> Prompt:
        """Import a single exported prompt as a new document."""
        if isinstance(data, dict) and isinstance(data.get("prompt"), dict):
            raw = data["prompt"]
        elif isinstance(data, dict) and (data.get("prompt_title") or data.get("title")):
            raw = data
        else:
            raise ValueError("File does not appear to contain a valid prompt")

        prompt = mapper.prompt_from_import(raw)
        prompt.id = generate_id()
        prompt.title = f"{prompt.title} (Imported)"
        await self.persist(prompt)
        logger.info("prompt.imported", id=prompt.id)
        return prompt

    # -------------------------------------------------------------------------
    # Vault
    # -------------------------------------------------------------------------

    async def connect_vault(self, directory: Path | str) -> None:
        if not isinstance(self.repo, VaultRepository):
            raise ValueError("Vault connect requires storage_mode=vault")
        await self.repo.connect(directory)


@lru_cache
def get_registry() -> PromptRegistry:
    """Get cached registry instance."""
    settings = get_settings()
    index = SimilarityIndex(lambda: SentenceTransformerProvider(settings.embedding_model))
    engine = HybridSearchEngine(index, min_score=settings.semantic_min_score)
    return PromptRegistry(
        get_repository(),
        index,
        engine,
        replace_on_import=settings.storage_mode == "local",
    )
