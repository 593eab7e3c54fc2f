"""Tests for the recommendation pipeline."""

import random

import pytest

from ..config import Settings
from ..errors import NotFound, ProviderUnavailable, RetrievalError
from .candidates import build_generators
from .candidates.base import CandidateSource
from .candidates.popularity import TrendingCandidateGenerator
from .candidates.semantic import SemanticCandidateGenerator
from .embeddings import EmbeddingProvider
from .engine import RecommendationEngine
from .stores.profiles import profile_from_source
from .stores.recommendations import get_recommendations


class KeywordProvider(EmbeddingProvider):
    VOCAB = ("music", "ai", "hiking")

    async def embed(self, text: str) -> list[float]:
        lowered = text.lower()
        return [1.0 if word in lowered else 0.0 for word in self.VOCAB]


class DownProvider(EmbeddingProvider):
    async def embed(self, text: str) -> list[float]:
        raise ProviderUnavailable("offline")


def _seed(memory_es):
    memory_es.add_user("me", tags=["ai", "music"], bio="music and ai")
    memory_es.add_user("a", tags=["music"], bio="music")
    memory_es.add_user("b", followers_count=1000, bio="hiking")
    memory_es.add_user("c", followers_count=5)
    memory_es.add_user("followed", followers_count=10_000)
    memory_es.add_follow("me", "followed")


class TestRecommend:
    @pytest.mark.asyncio
    async def test_additive_pipeline(self, memory_es):
        _seed(memory_es)
        engine = RecommendationEngine(memory_es, Settings(), rng=random.Random(0))

        recs = await engine.recommend("me", top_n=3)

        assert [r.user_id for r in recs] == ["b", "a", "c"]
        assert recs[0].score == pytest.approx(30.0)
        assert recs[0].reason == "Popular"
        assert recs[1].reason == "Interests: 1"

    @pytest.mark.asyncio
    async def test_default_top_n_is_interactive(self, memory_es):
        for i in range(10):
            memory_es.add_user(f"u{i}", followers_count=10 + i)
        memory_es.add_user("me")
        engine = RecommendationEngine(
            memory_es, Settings(interactive_top_n=3), generators=[TrendingCandidateGenerator()]
        )
        recs = await engine.recommend("me")
        assert [r.user_id for r in recs] == ["u9", "u8", "u7"]

    @pytest.mark.asyncio
    async def test_bonus_applied(self, memory_es):
        _seed(memory_es)
        engine = RecommendationEngine(
            memory_es, Settings(), generators=[TrendingCandidateGenerator()]
        )
        recs = await engine.recommend("me", top_n=10, bonus=1.0)
        by_id = {r.user_id: r.score for r in recs}
        assert by_id["b"] == pytest.approx(31.0)
        assert by_id["a"] == pytest.approx(21.0)

    @pytest.mark.asyncio
    async def test_unknown_requester(self, memory_es):
        engine = RecommendationEngine(memory_es, Settings())
        with pytest.raises(NotFound):
            await engine.recommend("ghost")

    @pytest.mark.asyncio
    async def test_all_strategies_fail(self, memory_es):
        memory_es.add_user("me")
        memory_es.fail_when = lambda index, query: index == "users"
        engine = RecommendationEngine(
            memory_es, Settings(), generators=[TrendingCandidateGenerator()]
        )
        requester = profile_from_source(memory_es.source("users", "me"))
        with pytest.raises(RetrievalError):
            await engine.recommend("me", requester=requester)

    @pytest.mark.asyncio
    async def test_semantic_scheme_applies_floor(self, memory_es):
        _seed(memory_es)
        settings = Settings(scoring_scheme="semantic")
        engine = RecommendationEngine(
            memory_es,
            settings,
            provider=KeywordProvider(),
            generators=[TrendingCandidateGenerator()],
        )

        recs = await engine.recommend("me", top_n=10)

        # "a" shares a tag and is similar; "b" and "c" score at or below 0.3
        assert [r.user_id for r in recs] == ["a"]
        assert recs[0].reason == "You both like music"
        assert recs[0].score > 0.3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", [None, DownProvider()])
    async def test_semantic_scheme_falls_back_to_additive(self, memory_es, provider):
        _seed(memory_es)
        engine = RecommendationEngine(
            memory_es,
            Settings(scoring_scheme="semantic"),
            provider=provider,
            generators=[TrendingCandidateGenerator()],
        )

        recs = await engine.recommend("me", top_n=10)

        assert [r.user_id for r in recs] == ["b", "a", "c"]
        assert recs[0].score == pytest.approx(30.0)
        assert recs[0].reason == "Popular"
        assert recs[1].reason == "Interests: 1"

    @pytest.mark.asyncio
    async def test_semantic_fallback_honours_explicit_floor(self, memory_es):
        _seed(memory_es)
        engine = RecommendationEngine(
            memory_es,
            Settings(scoring_scheme="semantic", score_floor=10.0),
            generators=[TrendingCandidateGenerator()],
        )
        recs = await engine.recommend("me", top_n=10)
        assert [r.user_id for r in recs] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_explicit_zero_top_n(self, memory_es):
        _seed(memory_es)
        engine = RecommendationEngine(
            memory_es, Settings(interactive_top_n=3), generators=[TrendingCandidateGenerator()]
        )
        assert await engine.recommend("me", top_n=0) == []


class TestRefresh:
    @pytest.mark.asyncio
    async def test_persists_list(self, memory_es):
        _seed(memory_es)
        engine = RecommendationEngine(
            memory_es, Settings(), generators=[TrendingCandidateGenerator()]
        )

        data = await engine.refresh("me", top_n=2)

        stored = await get_recommendations(memory_es, "me")
        assert stored == data
        assert [item.user_id for item in stored.items] == ["b", "a"]


class TestBuildGenerators:
    def test_without_provider(self):
        names = [g.source for g in build_generators(Settings())]
        assert names == [
            CandidateSource.SOCIAL_GRAPH,
            CandidateSource.SHARED_TAG,
            CandidateSource.SHARED_COMMUNITY,
            CandidateSource.TRENDING,
        ]

    def test_with_provider(self):
        generators = build_generators(Settings(), KeywordProvider())
        assert isinstance(generators[-1], SemanticCandidateGenerator)

    def test_semantic_disabled(self):
        generators = build_generators(Settings(semantic_enabled=False), KeywordProvider())
        assert all(not isinstance(g, SemanticCandidateGenerator) for g in generators)
