"""Tests for hybrid keyword and semantic search."""

import pytest
import pytest_asyncio

from prompt_library.core.embeddings import SimilarityIndex
from prompt_library.core.search import (
    HybridSearchEngine,
    RankingMode,
    ScoredPrompts,
    SearchFilters,
    SearchHit,
    SortKey,
    keyword_match,
    sort_prompts,
)
from prompt_library.db.models import Prompt

from tests.conftest import StubProvider, make_prompt


@pytest.fixture
def prompts():
    return [
        make_prompt([1.0, 0.0, 0.0], id="a", title="Exact", category="sales", client="acme",
                    status="live", date_created="2024-01-01T00:00:00+00:00"),
        make_prompt([0.0, 1.0, 0.0], id="b", title="Orthogonal", category="sales", client="globex",
                    status="draft", date_created="2024-03-01T00:00:00+00:00"),
        make_prompt([0.9, 0.1, 0.0], id="c", title="Close", category="support", client="acme",
                    status="live", date_created="2024-02-01T00:00:00Z"),
    ]


@pytest.fixture
def query_index():
    return SimilarityIndex(lambda: StubProvider({"q": [1.0, 0.0, 0.0]}))


@pytest_asyncio.fixture
async def engine(query_index):
    await query_index.load()
    return HybridSearchEngine(query_index, min_score=0.25)


def ids(hits):
    return [h.prompt.id for h in hits]


class TestKeyword:
    def test_keyword_match_fields(self):
        p = Prompt(title="Welcome", description="Greets users", prompt_text="Say HELLO", tags="onboarding", notes="v2")
        for query in ("welcome", "greets", "hello", "ONBOARD", "v2", ""):
            assert keyword_match(p, query)
        assert not keyword_match(p, "goodbye")

    def test_sort_keys(self, prompts):
        assert [p.id for p in sort_prompts(prompts, SortKey.DATE_DESC)] == ["b", "c", "a"]
        assert [p.id for p in sort_prompts(prompts, SortKey.DATE_ASC)] == ["a", "c", "b"]
        assert [p.id for p in sort_prompts(prompts, SortKey.NAME_ASC)] == ["c", "a", "b"]
        assert [p.id for p in sort_prompts(prompts, SortKey.CATEGORY_ASC)] == ["a", "b", "c"]
        assert [p.id for p in sort_prompts(prompts, SortKey.CLIENT_ASC)] == ["a", "c", "b"]

    def test_sort_changes_order_not_membership(self, prompts):
        for key in SortKey:
            assert sorted(p.id for p in sort_prompts(prompts, key)) == ["a", "b", "c"]

    def test_invalid_dates_sort_last_descending(self):
        good = Prompt(id="good", date_created="2024-01-01T00:00:00+00:00")
        bad = Prompt(id="bad", date_created="not a date")
        assert [p.id for p in sort_prompts([bad, good], SortKey.DATE_DESC)] == ["good", "bad"]

    @pytest.mark.asyncio
    async def test_keyword_mode_has_no_scores(self, engine, prompts):
        hits = await engine.search(prompts, "close", mode=RankingMode.KEYWORD)
        assert ids(hits) == ["c"]
        assert hits[0].score is None


class TestSemantic:
    @pytest.mark.asyncio
    async def test_ranked_by_similarity(self, engine, prompts):
        hits = await engine.search(prompts, "q")
        assert ids(hits) == ["a", "c"]
        assert hits[0].score == pytest.approx(1.0)
        assert hits[1].score == pytest.approx(0.9 / (0.9**2 + 0.1**2) ** 0.5)

    @pytest.mark.asyncio
    async def test_threshold_zero_keeps_everything(self, engine, prompts):
        hits = await engine.search(prompts, "q", min_score=0.0)
        assert ids(hits) == ["a", "c", "b"]
        assert hits[-1].score == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_threshold_is_monotonic(self, engine, prompts):
        previous = None
        for threshold in (0.0, 0.25, 0.5, 0.95, 1.0):
            current = set(ids(await engine.search(prompts, "q", min_score=threshold)))
            if previous is not None:
                assert current <= previous
            previous = current

    @pytest.mark.asyncio
    async def test_filters_apply_before_ranking(self, engine, prompts):
        hits = await engine.search(prompts, "q", filters=SearchFilters(category="support"))
        assert ids(hits) == ["c"]
        hits = await engine.search(prompts, "q", filters=SearchFilters(status="draft"), min_score=0.0)
        assert ids(hits) == ["b"]

    @pytest.mark.asyncio
    async def test_filters_apply_in_keyword_mode(self, engine, prompts):
        hits = await engine.search(prompts, "", mode=RankingMode.KEYWORD, filters=SearchFilters(client="acme"))
        assert sorted(ids(hits)) == ["a", "c"]

    @pytest.mark.asyncio
    async def test_stale_vectors_score_zero(self, engine, prompts):
        prompts[0].prompt_text = "edited since indexing"
        hits = await engine.search(prompts, "q", min_score=0.0)
        assert ids(hits)[0] == "c"
        stale = next(h for h in hits if h.prompt.id == "a")
        assert stale.score == 0.0

    @pytest.mark.asyncio
    async def test_top_k_after_threshold(self, engine, prompts):
        hits = await engine.search(prompts, "q", min_score=0.0, top_k=2)
        assert ids(hits) == ["a", "c"]

    @pytest.mark.asyncio
    async def test_empty_query_lists_by_sort(self, engine, prompts):
        hits = await engine.search(prompts, "   ", sort=SortKey.DATE_ASC)
        assert ids(hits) == ["a", "c", "b"]

    @pytest.mark.asyncio
    async def test_query_vector_reused(self, prompts):
        provider = StubProvider({"q": [1.0, 0.0, 0.0]})
        index = SimilarityIndex(lambda: provider)
        await index.load()
        engine = HybridSearchEngine(index)
        await engine.search(prompts, "q", min_score=0.5)
        await engine.search(prompts, "q", min_score=0.1)
        assert provider.calls == ["q"]

    def test_min_score_validated(self, query_index):
        engine = HybridSearchEngine(query_index)
        with pytest.raises(ValueError):
            engine.min_score = 1.5


class TestFallback:
    @pytest.mark.asyncio
    async def test_semantic_falls_back_while_loading(self, query_index, prompts):
        engine = HybridSearchEngine(query_index)
        hits = await engine.search(prompts, "close")
        assert ids(hits) == ["c"]
        assert hits[0].score is None

    @pytest.mark.asyncio
    async def test_semantic_falls_back_after_failed_load(self, prompts):
        def broken():
            raise RuntimeError("no model")

        index = SimilarityIndex(broken)
        await index.load()
        engine = HybridSearchEngine(index)
        hits = await engine.search(prompts, "exact")
        assert ids(hits) == ["a"]

    @pytest.mark.asyncio
    async def test_semantic_falls_back_when_embedding_raises(self, prompts):
        class BrokenProvider(StubProvider):
            def embed(self, text):
                raise RuntimeError("tokenizer blew up")

        index = SimilarityIndex(BrokenProvider)
        await index.load()
        engine = HybridSearchEngine(index)
        hits = await engine.search(prompts, "exact", mode=RankingMode.SEMANTIC)
        assert ids(hits) == ["a"]
        assert hits[0].score is None

    @pytest.mark.asyncio
    async def test_vector_from_other_model_scores_zero(self, query_index):
        await query_index.load()
        engine = HybridSearchEngine(query_index)
        foreign = make_prompt([1.0, 0.0, 0.0, 0.0], id="x", title="Wide")
        hits = (await engine.score([foreign], "q")).scores
        assert hits[0].score == 0.0


class TestScoredPrompts:
    def test_ties_keep_input_order(self):
        p1, p2, p3 = Prompt(id="1"), Prompt(id="2"), Prompt(id="3")
        scored = ScoredPrompts("q", (SearchHit(p1, 0.5), SearchHit(p2, 0.9), SearchHit(p3, 0.5)))
        assert ids(scored.ranked(0.0)) == ["2", "1", "3"]

    def test_threshold_inclusive(self):
        p = Prompt(id="1")
        scored = ScoredPrompts("q", (SearchHit(p, 0.25),))
        assert ids(scored.ranked(0.25)) == ["1"]
        assert scored.ranked(0.26) == []
