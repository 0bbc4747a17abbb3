"""Test fixtures — stub embedding provider, storage backends and the API app."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from prompt_library.core.embeddings import SimilarityIndex, content_hash, embedding_text, normalize
from prompt_library.core.registry import PromptRegistry
from prompt_library.db.models import Prompt
from prompt_library.db.sqlite_repo import LocalDatabaseRepository
from prompt_library.db.vault_repo import VaultRepository

VOCABULARY = ("alpha", "beta", "gamma")


class StubProvider:
    """Deterministic embeddings: explicit vectors first, else keyword counts."""

    def __init__(self, vectors: dict[str, Sequence[float]] | None = None) -> None:
        self.vectors = dict(vectors or {})
        self.calls: list[str] = []

    @property
    def dimension(self) -> int:
        return len(VOCABULARY)

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.vectors:
            return list(self.vectors[text])
        lowered = text.lower()
        return [float(lowered.count(word)) for word in VOCABULARY]


def make_prompt(vector: Sequence[float] | None = None, **fields) -> Prompt:
    """Prompt with an up-to-date (non-stale) vector when ``vector`` is given."""
    prompt = Prompt(**fields)
    if vector is not None:
        prompt.embedding = normalize(vector)
        prompt.embedding_hash = content_hash(embedding_text(prompt))
    return prompt


@pytest.fixture
def stub_provider() -> StubProvider:
    return StubProvider()


@pytest.fixture
def index(stub_provider) -> SimilarityIndex:
    """Index whose model has not been loaded yet."""
    return SimilarityIndex(lambda: stub_provider)


@pytest_asyncio.fixture
async def ready_index(index) -> SimilarityIndex:
    await index.load()
    return index


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "library.db"


@pytest_asyncio.fixture
async def sqlite_repo(db_path):
    repo = LocalDatabaseRepository(db_path, busy_timeout=0)
    await repo.init()
    yield repo
    await repo.close()


@pytest.fixture
def vault_dir(tmp_path):
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def vault_repo(vault_dir) -> VaultRepository:
    return VaultRepository(vault_dir, batch_size=2)


@pytest.fixture
def registry(sqlite_repo, ready_index) -> PromptRegistry:
    return PromptRegistry(sqlite_repo, ready_index)


@pytest.fixture
def api_registry(db_path, index) -> PromptRegistry:
    """Registry for the sync TestClient; set up outside any running loop."""
    repo = LocalDatabaseRepository(db_path, busy_timeout=0)
    asyncio.run(repo.init())
    asyncio.run(index.load())
    return PromptRegistry(repo, index)


@pytest.fixture
def app(api_registry):
    """FastAPI test app backed by a temporary SQLite database."""
    from prompt_library.core.registry import get_registry
    from prompt_library.main import app as _app

    _app.dependency_overrides[get_registry] = lambda: api_registry

    yield _app

    _app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    """HTTP test client."""
    return TestClient(app)
