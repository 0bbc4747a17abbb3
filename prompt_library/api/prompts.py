"""Prompt CRUD endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from prompt_library.api.models import PromptCreate, PromptResponse, PromptUpdate
from prompt_library.core.registry import PromptRegistry, get_registry

router = APIRouter()


@router.post("", response_model=PromptResponse, status_code=201)
async def create_prompt(
    data: PromptCreate,
    registry: PromptRegistry = Depends(get_registry),
) -> PromptResponse:
    """Create a new prompt."""
    prompt = await registry.create_prompt(**data.model_dump())
    return PromptResponse.from_prompt(prompt)


@router.get("", response_model=list[PromptResponse])
async def list_prompts(
    registry: PromptRegistry = Depends(get_registry),
) -> list[PromptResponse]:
    """List all prompts, in storage order."""
    prompts = await registry.list_prompts()
    return [PromptResponse.from_prompt(p) for p in prompts]


@router.get("/{prompt_id}", response_model=PromptResponse)
async def get_prompt(
    prompt_id: str,
    registry: PromptRegistry = Depends(get_registry),
) -> PromptResponse:
    """Get a prompt by id."""
    prompt = await registry.get_prompt(prompt_id)
    if not prompt:
        raise HTTPException(status_code=404, detail=f"Prompt '{prompt_id}' not found")
    return PromptResponse.from_prompt(prompt)


@router.put("/{prompt_id}", response_model=PromptResponse)
async def update_prompt(
    prompt_id: str,
    data: PromptUpdate,
    registry: PromptRegistry = Depends(get_registry),
) -> PromptResponse:
    """Update a prompt's fields."""
    prompt = await registry.update_prompt(prompt_id, **data.model_dump(exclude_none=True))
    if not prompt:
        raise HTTPException(status_code=404, detail=f"Prompt '{prompt_id}' not found")
    return PromptResponse.from_prompt(prompt)


@router.post("/{prompt_id}/duplicate", response_model=PromptResponse, status_code=201)
async def duplicate_prompt(
    prompt_id: str,
    registry: PromptRegistry = Depends(get_registry),
) -> PromptResponse:
    """Copy a prompt under a new id, without its history."""
    prompt = await registry.duplicate_prompt(prompt_id)
    if not prompt:
        raise HTTPException(status_code=404, detail=f"Prompt '{prompt_id}' not found")
    return PromptResponse.from_prompt(prompt)


@router.delete("/{prompt_id}", status_code=204)
async def delete_prompt(
    prompt_id: str,
    registry: PromptRegistry = Depends(get_registry),
) -> None:
    """Delete a prompt and its version history. Idempotent."""
    await registry.remove(prompt_id)
