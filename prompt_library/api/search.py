"""Search, facet and semantic-status endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from prompt_library.api.models import (
    FacetsResponse,
    SearchHitResponse,
    SearchResponse,
    SemanticStatusResponse,
)
from prompt_library.core.registry import PromptRegistry, get_registry
from prompt_library.core.search import RankingMode, SearchFilters, SortKey

router = APIRouter()


@router.get("/search", response_model=SearchResponse)
async def search(
    q: str = "",
    mode: RankingMode = RankingMode.SEMANTIC,
    category: str | None = None,
    client: str | None = None,
    status: str | None = None,
    sort: SortKey = SortKey.DATE_DESC,
    min_score: float | None = Query(None, ge=0.0, le=1.0),
    limit: int | None = Query(None, ge=1),
    registry: PromptRegistry = Depends(get_registry),
) -> SearchResponse:
    """Hybrid search. Semantic mode degrades to keyword while the model loads."""
    hits = await registry.search(
        query=q,
        filters=SearchFilters(category=category, client=client, status=status),
        mode=mode,
        sort=sort,
        min_score=min_score,
        top_k=limit,
    )
    return SearchResponse(
        query=q,
        mode=mode,
        semantic_state=registry.index.state.value,
        results=[SearchHitResponse.from_hit(h) for h in hits],
    )


@router.get("/facets", response_model=FacetsResponse)
async def facets(registry: PromptRegistry = Depends(get_registry)) -> FacetsResponse:
    """Distinct categories, clients and statuses for filter pickers."""
    return FacetsResponse(**await registry.facets())


@router.get("/semantic/status", response_model=SemanticStatusResponse)
async def semantic_status(registry: PromptRegistry = Depends(get_registry)) -> SemanticStatusResponse:
    index = registry.index
    return SemanticStatusResponse(
        state=index.state.value,
        min_score=registry.engine.min_score,
        error=str(index.load_error) if index.load_error else None,
    )


@router.put("/semantic/threshold", response_model=SemanticStatusResponse)
async def set_threshold(
    min_score: float = Query(..., ge=0.0, le=1.0),
    registry: PromptRegistry = Depends(get_registry),
) -> SemanticStatusResponse:
    """Change the default similarity threshold. No vectors are recomputed."""
    try:
        registry.engine.min_score = min_score
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return await semantic_status(registry)
