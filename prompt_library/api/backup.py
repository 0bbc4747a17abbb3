"""Backup import/export and vault connection endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from prompt_library.api.models import ImportResponse, PromptResponse, VaultConnectRequest
from prompt_library.core.registry import PromptRegistry, get_registry

router = APIRouter()


@router.get("/export")
async def export_backup(registry: PromptRegistry = Depends(get_registry)) -> dict[str, Any]:
    """All prompts and templates in the backup format."""
    return await registry.export_backup()


@router.post("/import", response_model=ImportResponse)
async def import_backup(
    data: dict[str, Any] = Body(...),
    registry: PromptRegistry = Depends(get_registry),
) -> ImportResponse:
    """Restore a backup. Replaces all data when using the local database."""
    try:
        counts = await registry.import_backup(data)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return ImportResponse(**counts)


@router.post("/import/prompt", response_model=PromptResponse, status_code=201)
async def import_prompt(
    data: dict[str, Any] = Body(...),
    registry: PromptRegistry = Depends(get_registry),
) -> PromptResponse:
    """Import one exported prompt as a new document."""
    try:
        prompt = await registry.import_prompt(data)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return PromptResponse.from_prompt(prompt)


@router.post("/vault/connect", status_code=204)
async def connect_vault(
    data: VaultConnectRequest,
    registry: PromptRegistry = Depends(get_registry),
) -> None:
    """Select the vault directory (vault storage mode only)."""
    try:
        await registry.connect_vault(data.path)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
