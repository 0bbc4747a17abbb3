"""Similarity index — embedding lifecycle for prompts.

The model is loaded once, in the background, and every prompt vector is
tagged with a digest of the text it was computed from. A prompt whose
current text no longer matches that digest is stale and ranks as if it had
no vector at all until it is recomputed.
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Protocol, runtime_checkable

import numpy as np
import structlog

from prompt_library.db.models import Prompt
from prompt_library.errors import EmbeddingUnavailable

logger = structlog.get_logger()


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Opaque text -> fixed-length vector function."""

    @property
    def dimension(self) -> int:
        ...

    def embed(self, text: str) -> list[float]:
        ...


class SentenceTransformerProvider:
    """Embeddings from a sentence-transformers model, loaded on construction.

    Requires the ``embeddings`` extra (``pip install prompt-library[embeddings]``).
    """

    def __init__(self, model_name: str) -> None:
        from sentence_transformers import SentenceTransformer

        self.model_name = model_name
        self._model = SentenceTransformer(model_name, device="cpu")

    @property
    def dimension(self) -> int:
        return int(self._model.get_sentence_embedding_dimension())

    def embed(self, text: str) -> list[float]:
        vector = self._model.encode(text, normalize_embeddings=True, convert_to_numpy=True)
        return vector.tolist()


class IndexState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def embedding_text(prompt: Prompt) -> str:
    """Text a prompt's vector is computed from."""
    return f"{prompt.title} {prompt.description} {prompt.notes} {prompt.prompt_text}".strip()


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def normalize(vector: Sequence[float]) -> list[float]:
    """Scale to unit length; a zero vector is returned unchanged."""
    arr = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return arr.tolist()
    return (arr / norm).tolist()


def similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Dot product of two unit vectors.

    Returns 0.0 instead of raising when either vector is missing or empty or
    the lengths differ, so an unindexed prompt simply ranks lowest.
    """
    if a is None or b is None or len(a) == 0 or len(a) != len(b):
        return 0.0
    return float(np.dot(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64)))


def is_stale(prompt: Prompt, dimension: int | None = None) -> bool:
    """True when the prompt has no vector for its current text.

    With ``dimension`` set, a vector of any other length (one computed by a
    different model) is stale as well.
    """
    if not prompt.embedding or prompt.embedding_hash is None:
        return True
    if dimension is not None and len(prompt.embedding) != dimension:
        return True
    return prompt.embedding_hash != content_hash(embedding_text(prompt))


class SimilarityIndex:
    """Owns the (single) embedding model and computes prompt vectors."""

    def __init__(self, provider_factory: Callable[[], EmbeddingProvider]) -> None:
        self._provider_factory = provider_factory
        self._provider: EmbeddingProvider | None = None
        self._load_task: asyncio.Task | None = None
        self.load_error: BaseException | None = None

    @property
    def state(self) -> IndexState:
        if self._provider is not None:
            return IndexState.READY
        if self._load_task is not None and not self._load_task.done():
            return IndexState.LOADING
        if self.load_error is not None:
            return IndexState.FAILED
        return IndexState.IDLE

    @property
    def is_ready(self) -> bool:
        return self._provider is not None

    @property
    def dimension(self) -> int | None:
        """Vector length of the loaded model, None until it is ready."""
        if self._provider is None:
            return None
        return self._provider.dimension

    async def load(self) -> bool:
        """Load the model once; concurrent callers share the in-flight load.

        Returns True when the model is ready, False if loading failed.
        """
        if self._provider is not None:
            return True
        if self._load_task is None or (self._load_task.done() and self.load_error is not None):
            self.load_error = None
            self._load_task = asyncio.ensure_future(self._load())
        return await asyncio.shield(self._load_task)

    async def _load(self) -> bool:
        logger.info("semantic.loading")
        try:
            provider = await asyncio.to_thread(self._provider_factory)
        except Exception as e:
            self.load_error = e
            logger.warning("semantic.load_failed", error=str(e))
            return False
        self._provider = provider
        logger.info("semantic.loaded", dimension=provider.dimension)
        return True

    async def compute_vector(self, text: str) -> list[float]:
        """Unit-length embedding of ``text``.

        Raises:
            EmbeddingUnavailable: the model has not finished loading.
        """
        provider = self._provider
        if provider is None:
            raise EmbeddingUnavailable(f"Embedding model is {self.state.value}")
        vector = await asyncio.to_thread(provider.embed, text)
        return normalize(vector)

    async def index_prompt(self, prompt: Prompt) -> Prompt:
        """Compute the vector for the prompt's current text and attach it in place."""
        text = embedding_text(prompt)
        if not text:
            prompt.clear_embedding()
            return prompt
        prompt.embedding = await self.compute_vector(text)
        prompt.embedding_hash = content_hash(text)
        return prompt
