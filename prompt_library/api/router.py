"""Main API router — aggregates all endpoint modules."""

from fastapi import APIRouter

from prompt_library.api.backup import router as backup_router
from prompt_library.api.collections import router as collections_router
from prompt_library.api.prompts import router as prompts_router
from prompt_library.api.search import router as search_router
from prompt_library.api.templates import router as templates_router
from prompt_library.api.versions import router as versions_router

api_router = APIRouter()

api_router.include_router(prompts_router, prefix="/prompts", tags=["prompts"])
api_router.include_router(versions_router, prefix="/prompts", tags=["versions"])
api_router.include_router(templates_router, prefix="/templates", tags=["templates"])
api_router.include_router(collections_router, prefix="/collections", tags=["collections"])
api_router.include_router(search_router, tags=["search"])
api_router.include_router(backup_router, tags=["backup"])
