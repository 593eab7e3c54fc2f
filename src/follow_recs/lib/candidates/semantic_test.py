"""Tests for the semantic-similarity candidate generator."""

import pytest

from ...errors import ProviderUnavailable
from ...models import UserProfile
from ..candidates.base import CandidateSource
from ..candidates.semantic import SemanticCandidateGenerator
from ..embeddings import EmbeddingProvider


class KeywordProvider(EmbeddingProvider):
    """Embeds text as presence flags for a fixed vocabulary."""

    VOCAB = ("music", "ai", "hiking", "chess")

    def __init__(self):
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        lowered = text.lower()
        return [1.0 if word in lowered else 0.0 for word in self.VOCAB]


class DownProvider(EmbeddingProvider):
    async def embed(self, text: str) -> list[float]:
        raise ProviderUnavailable("embedding service offline")


@pytest.fixture
def requester():
    return UserProfile(id="me", username="me", display_name="Me", bio="music and ai")


def _seed(memory_es):
    memory_es.add_user("twin", bio="all about music and ai", joined_at="2024-03-01T00:00:00Z")
    memory_es.add_user("half", bio="music only", joined_at="2024-03-02T00:00:00Z")
    memory_es.add_user("other", bio="hiking", joined_at="2024-03-03T00:00:00Z")
    memory_es.add_user("anon", display_name="", bio="music and ai", joined_at="2024-03-04T00:00:00Z")
    memory_es.add_user("me", display_name="Me", bio="music and ai", joined_at="2024-03-05T00:00:00Z")


class TestSemanticCandidateGenerator:
    @pytest.mark.asyncio
    async def test_ranks_by_similarity(self, memory_es, requester):
        _seed(memory_es)
        generator = SemanticCandidateGenerator(KeywordProvider())

        result = await generator.generate(memory_es, requester)

        assert result.generator_name == "semantic"
        ids = [c.id for c in result.candidates]
        assert ids == ["twin", "half", "other"]
        assert result.candidates[0].similarity == pytest.approx(1.0)
        assert result.candidates[-1].similarity == pytest.approx(0.0)
        assert all(c.sources == {CandidateSource.SEMANTIC} for c in result.candidates)

    @pytest.mark.asyncio
    async def test_skips_requester_and_nameless_profiles(self, memory_es, requester):
        _seed(memory_es)
        result = await SemanticCandidateGenerator(KeywordProvider()).generate(memory_es, requester)
        ids = {c.id for c in result.candidates}
        assert "me" not in ids
        assert "anon" not in ids

    @pytest.mark.asyncio
    async def test_reuses_stored_embedding(self, memory_es):
        memory_es.add_user("twin", bio="music", profile_embedding=[1.0, 0.0, 0.0, 0.0])
        provider = KeywordProvider()
        requester = UserProfile(id="me", username="me", profile_embedding=[1.0, 0.0, 0.0, 0.0])

        result = await SemanticCandidateGenerator(provider).generate(memory_es, requester)

        assert [c.id for c in result.candidates] == ["twin"]
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_limit(self, memory_es, requester):
        _seed(memory_es)
        result = await SemanticCandidateGenerator(KeywordProvider(), limit=1).generate(
            memory_es, requester
        )
        assert [c.id for c in result.candidates] == ["twin"]

    @pytest.mark.asyncio
    async def test_requester_without_text(self, memory_es):
        _seed(memory_es)
        requester = UserProfile(id="blank", username="blank")
        result = await SemanticCandidateGenerator(KeywordProvider()).generate(memory_es, requester)
        assert result.candidates == []

    @pytest.mark.asyncio
    async def test_no_provider_raises(self, memory_es, requester):
        with pytest.raises(ProviderUnavailable):
            await SemanticCandidateGenerator(None).generate(memory_es, requester)

    @pytest.mark.asyncio
    async def test_provider_failure_propagates(self, memory_es, requester):
        _seed(memory_es)
        with pytest.raises(ProviderUnavailable):
            await SemanticCandidateGenerator(DownProvider()).generate(memory_es, requester)
