"""Tests for the similarity index."""

import asyncio
import math

import pytest

from prompt_library.core.embeddings import (
    EmbeddingProvider,
    IndexState,
    SimilarityIndex,
    content_hash,
    embedding_text,
    is_stale,
    normalize,
    similarity,
)
from prompt_library.db.models import Prompt
from prompt_library.errors import EmbeddingUnavailable

from tests.conftest import StubProvider, make_prompt


class TestVectorMath:
    def test_normalize(self):
        v = normalize([3.0, 4.0])
        assert v == pytest.approx([0.6, 0.8])
        assert math.isclose(sum(x * x for x in v), 1.0)

    def test_normalize_zero_vector(self):
        assert normalize([0.0, 0.0]) == [0.0, 0.0]

    def test_similarity_identical(self):
        v = normalize([1.0, 2.0, 3.0])
        assert similarity(v, v) == pytest.approx(1.0)

    def test_similarity_orthogonal(self):
        assert similarity([1.0, 0.0], [0.0, 1.0]) == 0.0

    def test_similarity_symmetric(self):
        a, b = normalize([1.0, 2.0]), normalize([2.0, 1.0])
        assert similarity(a, b) == pytest.approx(similarity(b, a))

    @pytest.mark.parametrize(
        "a, b",
        [(None, [1.0]), ([1.0], None), ([], []), ([1.0, 0.0], [1.0, 0.0, 0.0])],
    )
    def test_similarity_degenerate_inputs(self, a, b):
        assert similarity(a, b) == 0.0


class TestStaleness:
    def test_embedding_text(self):
        p = Prompt(title="T", description="D", notes="N", prompt_text="B")
        assert embedding_text(p) == "T D N B"

    def test_no_vector_is_stale(self):
        assert is_stale(Prompt(title="T"))

    def test_vector_without_hash_is_stale(self):
        p = Prompt(title="T", embedding=[1.0, 0.0, 0.0])
        assert is_stale(p)

    def test_current_vector(self):
        assert not is_stale(make_prompt([1.0, 0.0, 0.0], title="T"))

    def test_edit_makes_stale(self):
        p = make_prompt([1.0, 0.0, 0.0], title="T", prompt_text="old")
        p.prompt_text = "new"
        assert is_stale(p)

    def test_non_text_edit_keeps_vector(self):
        p = make_prompt([1.0, 0.0, 0.0], title="T")
        p.category = "sales"
        p.tags = "x,y"
        assert not is_stale(p)

    def test_vector_of_other_dimension_is_stale(self):
        p = make_prompt([1.0, 0.0, 0.0, 0.0], title="T")
        assert not is_stale(p)
        assert is_stale(p, dimension=3)
        assert not is_stale(p, dimension=4)


class TestSimilarityIndex:
    def test_stub_is_a_provider(self, stub_provider):
        assert isinstance(stub_provider, EmbeddingProvider)

    @pytest.mark.asyncio
    async def test_initial_state(self, index):
        assert index.state is IndexState.IDLE
        assert not index.is_ready

    @pytest.mark.asyncio
    async def test_compute_before_ready(self, index):
        with pytest.raises(EmbeddingUnavailable):
            await index.compute_vector("alpha")

    @pytest.mark.asyncio
    async def test_load(self, index):
        assert await index.load() is True
        assert index.state is IndexState.READY
        assert await index.load() is True

    @pytest.mark.asyncio
    async def test_concurrent_loads_share_one_model(self, stub_provider):
        created = []

        def factory():
            created.append(1)
            return stub_provider

        index = SimilarityIndex(factory)
        results = await asyncio.gather(index.load(), index.load(), index.load())
        assert results == [True, True, True]
        assert len(created) == 1

    @pytest.mark.asyncio
    async def test_load_failure_then_retry(self, stub_provider):
        attempts = []

        def factory():
            attempts.append(1)
            if len(attempts) == 1:
                raise OSError("model download failed")
            return stub_provider

        index = SimilarityIndex(factory)
        assert await index.load() is False
        assert index.state is IndexState.FAILED
        assert "download failed" in str(index.load_error)
        with pytest.raises(EmbeddingUnavailable, match="failed"):
            await index.compute_vector("alpha")

        assert await index.load() is True
        assert index.state is IndexState.READY
        assert index.load_error is None

    @pytest.mark.asyncio
    async def test_compute_vector_is_normalized(self, ready_index):
        vector = await ready_index.compute_vector("alpha alpha beta")
        assert math.isclose(sum(x * x for x in vector), 1.0)

    @pytest.mark.asyncio
    async def test_index_prompt(self, ready_index):
        p = Prompt(title="alpha", prompt_text="beta")
        await ready_index.index_prompt(p)
        assert p.embedding is not None
        assert p.embedding_hash == content_hash(embedding_text(p))
        assert not is_stale(p)

    @pytest.mark.asyncio
    async def test_index_prompt_without_text(self, ready_index):
        p = make_prompt([1.0, 0.0, 0.0], title="alpha")
        p.title = ""
        await ready_index.index_prompt(p)
        assert p.embedding is None
        assert p.embedding_hash is None

    @pytest.mark.asyncio
    async def test_explicit_vectors(self):
        index = SimilarityIndex(lambda: StubProvider({"hello": [0.0, 2.0, 0.0]}))
        await index.load()
        assert await index.compute_vector("hello") == pytest.approx([0.0, 1.0, 0.0])
