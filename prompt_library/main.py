"""FastAPI application entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from prompt_library.api.router import api_router
from prompt_library.config import get_settings
from prompt_library.core.registry import PromptRegistry, get_registry
from prompt_library.errors import BackendConnectionError, BlockedError, NotConnectedError
from prompt_library.utils.logging import setup_logging

logger = structlog.get_logger()

VERSION = "0.1.0"


def _registry(app: FastAPI) -> PromptRegistry:
    return app.dependency_overrides.get(get_registry, get_registry)()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — open storage, start semantic indexing, clean up."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    logger.info("prompt_library.starting", port=settings.port, storage=settings.storage_mode)

    registry = _registry(app)
    await registry.repo.init()
    logger.info("prompt_library.storage_ready")

    # Model load and reindexing run in the background; search falls back to keyword until ready
    registry.start_background_indexing()

    yield

    await registry.stop()
    await registry.repo.close()
    logger.info("prompt_library.shutdown")


app = FastAPI(
    title="Prompt Library",
    description="Local-first prompt library with hybrid keyword and semantic search",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(BlockedError)
async def blocked_handler(request: Request, exc: BlockedError) -> JSONResponse:
    logger.warning("storage.blocked", path=exc.path)
    return JSONResponse(status_code=423, content={"detail": str(exc)})


@app.exception_handler(NotConnectedError)
async def not_connected_handler(request: Request, exc: NotConnectedError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(BackendConnectionError)
async def connection_handler(request: Request, exc: BackendConnectionError) -> JSONResponse:
    logger.error("storage.unavailable", error=str(exc))
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.get("/")
async def root():
    """Service info endpoint."""
    return {"service": "prompt-library", "version": VERSION}


@app.get("/health")
async def health():
    """Health check endpoint, including the semantic index state."""
    registry = _registry(app)
    return {
        "status": "healthy",
        "service": "prompt-library",
        "version": VERSION,
        "semantic": registry.index.state.value,
    }
