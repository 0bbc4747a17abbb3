"""Version snapshot endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from prompt_library.api.models import PromptResponse, VersionRestoreRequest
from prompt_library.core.registry import PromptRegistry, get_registry
from prompt_library.db.models import Version

router = APIRouter()


@router.post("/{prompt_id}/versions", response_model=Version, status_code=201)
async def commit_version(
    prompt_id: str,
    registry: PromptRegistry = Depends(get_registry),
) -> Version:
    """Snapshot the prompt's current body and notes as the next version."""
    version = await registry.commit_version(prompt_id)
    if version is None:
        raise HTTPException(status_code=404, detail=f"Prompt '{prompt_id}' not found")
    return version


@router.get("/{prompt_id}/versions", response_model=list[Version])
async def list_versions(
    prompt_id: str,
    limit: int | None = Query(None, ge=1),
    registry: PromptRegistry = Depends(get_registry),
) -> list[Version]:
    """Version history, most recent first."""
    history = await registry.history(prompt_id, limit)
    if history is None:
        raise HTTPException(status_code=404, detail=f"Prompt '{prompt_id}' not found")
    return history


@router.get("/{prompt_id}/versions/{version_no}", response_model=Version)
async def get_version(
    prompt_id: str,
    version_no: int,
    registry: PromptRegistry = Depends(get_registry),
) -> Version:
    version = await registry.get_version(prompt_id, version_no)
    if version is None:
        raise HTTPException(
            status_code=404,
            detail=f"Prompt '{prompt_id}' or version {version_no} not found",
        )
    return version


@router.post("/{prompt_id}/restore", response_model=PromptResponse)
async def restore_version(
    prompt_id: str,
    data: VersionRestoreRequest,
    registry: PromptRegistry = Depends(get_registry),
) -> PromptResponse:
    """Copy a version's text back into the working prompt."""
    prompt = await registry.restore_version(prompt_id, data.version_no)
    if prompt is None:
        raise HTTPException(
            status_code=404,
            detail=f"Prompt '{prompt_id}' or version {data.version_no} not found",
        )
    return PromptResponse.from_prompt(prompt)
