"""Smart collection endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from prompt_library.api.models import CollectionCreate, CollectionResponse, SearchHitResponse, SearchResponse
from prompt_library.core.registry import PromptRegistry, get_registry
from prompt_library.core.search import RankingMode, SortKey

router = APIRouter()


@router.post("", response_model=CollectionResponse, status_code=201)
async def save_collection(
    data: CollectionCreate,
    registry: PromptRegistry = Depends(get_registry),
) -> CollectionResponse:
    """Save the current filters under a name."""
    try:
        return await registry.save_collection(data.name, data.filters)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("", response_model=list[CollectionResponse])
async def list_collections(
    registry: PromptRegistry = Depends(get_registry),
) -> list[CollectionResponse]:
    return await registry.list_collections()


@router.get("/{collection_id}/apply", response_model=SearchResponse)
async def apply_collection(
    collection_id: str,
    mode: RankingMode = RankingMode.SEMANTIC,
    sort: SortKey = SortKey.DATE_DESC,
    registry: PromptRegistry = Depends(get_registry),
) -> SearchResponse:
    """Re-run a collection's filters against the current prompts."""
    collection = await registry.get_collection(collection_id)
    if collection is None:
        raise HTTPException(status_code=404, detail=f"Collection '{collection_id}' not found")
    hits = await registry.apply_collection(collection_id, mode=mode, sort=sort) or []
    return SearchResponse(
        query=collection.filters.search,
        mode=mode,
        semantic_state=registry.index.state.value,
        results=[SearchHitResponse.from_hit(h) for h in hits],
    )


@router.delete("/{collection_id}", status_code=204)
async def delete_collection(
    collection_id: str,
    registry: PromptRegistry = Depends(get_registry),
) -> None:
    await registry.remove_collection(collection_id)
