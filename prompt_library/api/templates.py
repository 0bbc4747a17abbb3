"""Template CRUD endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from prompt_library.api.models import TemplateCreate, TemplateResponse, TemplateUpdate
from prompt_library.core.registry import PromptRegistry, get_registry

router = APIRouter()


@router.post("", response_model=TemplateResponse, status_code=201)
async def create_template(
    data: TemplateCreate,
    registry: PromptRegistry = Depends(get_registry),
) -> TemplateResponse:
    return await registry.create_template(**data.model_dump())


@router.get("", response_model=list[TemplateResponse])
async def list_templates(
    q: str = "",
    registry: PromptRegistry = Depends(get_registry),
) -> list[TemplateResponse]:
    """Templates matching ``q``, favourites first."""
    if q:
        return await registry.search_templates(q)
    return await registry.list_templates()


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: str,
    registry: PromptRegistry = Depends(get_registry),
) -> TemplateResponse:
    template = await registry.get_template(template_id)
    if not template:
        raise HTTPException(status_code=404, detail=f"Template '{template_id}' not found")
    return template


@router.put("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    data: TemplateUpdate,
    registry: PromptRegistry = Depends(get_registry),
) -> TemplateResponse:
    template = await registry.update_template(template_id, **data.model_dump(exclude_none=True))
    if not template:
        raise HTTPException(status_code=404, detail=f"Template '{template_id}' not found")
    return template


@router.post("/{template_id}/duplicate", response_model=TemplateResponse, status_code=201)
async def duplicate_template(
    template_id: str,
    registry: PromptRegistry = Depends(get_registry),
) -> TemplateResponse:
    template = await registry.duplicate_template(template_id)
    if not template:
        raise HTTPException(status_code=404, detail=f"Template '{template_id}' not found")
    return template


@router.delete("/{template_id}", status_code=204)
async def delete_template(
    template_id: str,
    registry: PromptRegistry = Depends(get_registry),
) -> None:
    await registry.remove_template(template_id)
