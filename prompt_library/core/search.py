"""Hybrid search — exact filters combined with keyword or semantic ranking.

Exact filters (category, client, status) always apply first, in both modes.
Keyword mode keeps every prompt that contains the query as a substring and
orders by the requested sort key. Semantic mode scores every filtered prompt
against the query vector, drops those under the threshold and orders by
score. When the embedding model is not ready, semantic requests quietly run
as keyword requests.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

import structlog
from pydantic import BaseModel

from prompt_library.core.embeddings import SimilarityIndex, is_stale, similarity
from prompt_library.db.models import Prompt
from prompt_library.errors import EmbeddingUnavailable

logger = structlog.get_logger()

DEFAULT_MIN_SCORE = 0.25

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class RankingMode(str, Enum):
    KEYWORD = "keyword"
    SEMANTIC = "semantic"


class SortKey(str, Enum):
    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    NAME_ASC = "name-asc"
    CATEGORY_ASC = "cat-asc"
    CLIENT_ASC = "client-asc"


class SearchFilters(BaseModel):
    """Exact-match filters; empty/None fields are inactive. AND-combined."""

    category: str | None = None
    client: str | None = None
    status: str | None = None

    def matches(self, prompt: Prompt) -> bool:
        if self.category and prompt.category != self.category:
            return False
        if self.client and prompt.client != self.client:
            return False
        if self.status and prompt.status.value != self.status:
            return False
        return True


@dataclass(frozen=True)
class SearchHit:
    """One result. ``score`` is None for keyword-ranked results."""

    prompt: Prompt
    score: float | None = None


@dataclass(frozen=True)
class ScoredPrompts:
    """Semantic scores for a filtered prompt set, in original relative order.

    ``ranked`` can be re-applied with any threshold without recomputing a
    single vector.
    """

    query: str
    scores: tuple[SearchHit, ...]

    def ranked(self, min_score: float, top_k: int | None = None) -> list[SearchHit]:
        kept = [hit for hit in self.scores if hit.score >= min_score]
        # sorted() is stable: equal scores keep their original order
        kept = sorted(kept, key=lambda hit: hit.score, reverse=True)
        if top_k is not None:
            kept = kept[:top_k]
        return kept


def apply_filters(prompts: Iterable[Prompt], filters: SearchFilters | None) -> list[Prompt]:
    if filters is None:
        return list(prompts)
    return [p for p in prompts if filters.matches(p)]


def keyword_match(prompt: Prompt, query: str) -> bool:
    """Case-insensitive substring match over the prompt's text fields."""
    if not query:
        return True
    needle = query.casefold()
    return any(
        needle in (field or "").casefold()
        for field in (prompt.title, prompt.description, prompt.prompt_text, prompt.tags, prompt.notes)
    )


def _parse_date(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_prompts(prompts: Iterable[Prompt], sort: SortKey | str) -> list[Prompt]:
    """Return a new list ordered by ``sort``; unknown keys keep the input order."""
    items = list(prompts)
    try:
        key = SortKey(sort)
    except ValueError:
        return items
    if key is SortKey.DATE_DESC:
        return sorted(items, key=lambda p: _parse_date(p.date_created), reverse=True)
    if key is SortKey.DATE_ASC:
        return sorted(items, key=lambda p: _parse_date(p.date_created))
    if key is SortKey.NAME_ASC:
        return sorted(items, key=lambda p: (p.title or "").casefold())
    if key is SortKey.CATEGORY_ASC:
        return sorted(items, key=lambda p: (p.category or "").casefold())
    return sorted(items, key=lambda p: (p.client or "").casefold())


class HybridSearchEngine:
    """Produces a totally ordered result list for a query and filter set."""

    def __init__(self, index: SimilarityIndex, min_score: float = DEFAULT_MIN_SCORE) -> None:
        self.index = index
        self.min_score = min_score
        self._query_vectors: dict[str, list[float]] = {}

    @property
    def min_score(self) -> float:
        return self._min_score

    @min_score.setter
    def min_score(self, value: float) -> None:
        value = float(value)
        if not 0.0 <= value <= 1.0:
            raise ValueError("min_score must be between 0 and 1")
        self._min_score = value

    async def search(
        self,
        prompts: Iterable[Prompt],
        query: str = "",
        filters: SearchFilters | None = None,
        mode: RankingMode | str = RankingMode.SEMANTIC,
        sort: SortKey | str = SortKey.DATE_DESC,
        min_score: float | None = None,
        top_k: int | None = None,
    ) -> list[SearchHit]:
        candidates = apply_filters(prompts, filters)
        query = (query or "").strip()

        if RankingMode(mode) is RankingMode.SEMANTIC and query and self.index.is_ready:
            try:
                scored = await self.score(candidates, query)
            except EmbeddingUnavailable:
                logger.debug("search.semantic_fallback", query=query)
            except Exception as e:
                logger.warning("search.semantic_fallback", query=query, error=str(e))
            else:
                threshold = self.min_score if min_score is None else min_score
                return scored.ranked(threshold, top_k)

        return self.keyword_search(candidates, query, sort, top_k)

    def keyword_search(
        self,
        prompts: Iterable[Prompt],
        query: str = "",
        sort: SortKey | str = SortKey.DATE_DESC,
        top_k: int | None = None,
    ) -> list[SearchHit]:
        matched = [p for p in prompts if keyword_match(p, query)]
        hits = [SearchHit(p) for p in sort_prompts(matched, sort)]
        if top_k is not None:
            hits = hits[:top_k]
        return hits

    async def score(self, prompts: Iterable[Prompt], query: str) -> ScoredPrompts:
        """Similarity of every prompt to ``query``; stale vectors score 0.

        Raises:
            EmbeddingUnavailable: the model is not ready.
        """
        query_vector = await self._query_vector(query)
        dimension = self.index.dimension
        hits = tuple(
            SearchHit(p, 0.0 if is_stale(p, dimension) else similarity(query_vector, p.embedding))
            for p in prompts
        )
        return ScoredPrompts(query=query, scores=hits)

    async def _query_vector(self, query: str) -> list[float]:
        cached = self._query_vectors.get(query)
        if cached is not None:
            return cached
        vector = await self.index.compute_vector(query)
        # Only the latest query is kept; threshold tweaks reuse it.
        self._query_vectors = {query: vector}
        return vector
