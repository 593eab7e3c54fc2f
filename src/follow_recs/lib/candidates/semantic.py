"""Semantic-similarity candidate generator.

Generates candidates whose profile text is close to the requester's:

1. Embed the requester's profile text (display name, bio, interests), or
   reuse the stored ``profile_embedding``.
2. Load a pool of the most recently joined users.
3. Embed each pooled profile the same way, concurrently.
4. Rank the pool by cosine similarity to the requester.

Needs an :class:`EmbeddingProvider`; without one the generator raises
:class:`ProviderUnavailable` and the retriever carries on without it.
"""

import asyncio
import logging

from ...errors import ProviderUnavailable
from ...models import UserProfile
from ..embeddings import EmbeddingProvider, cosine_similarity, profile_embedding
from ..stores.profiles import ProfileFilter, query_profiles
from .base import Candidate, CandidateGenerator, CandidateResult, CandidateSource

logger = logging.getLogger(__name__)

POOL_SIZE = 100
SEMANTIC_LIMIT = 20


async def recent_profiles(es, pool_size: int = POOL_SIZE) -> list[UserProfile]:
    """The *pool_size* most recently joined profiles."""
    flt = ProfileFilter(order_by="joined_at", direction="desc")
    return await query_profiles(es, flt, limit=pool_size)


async def similarity_to(
    provider: EmbeddingProvider | None,
    target: list[float],
    profiles: list[UserProfile],
) -> list[float | None]:
    """Cosine similarity of each profile to *target*; ``None`` if it has no text."""
    vectors = await asyncio.gather(*(profile_embedding(provider, p) for p in profiles))
    return [
        cosine_similarity(target, vec) if vec is not None else None
        for vec in vectors
    ]


class SemanticCandidateGenerator(CandidateGenerator):
    """Candidate generator based on cosine similarity of profile embeddings.

    Pipeline:
        requester → embedding → recent-user pool → embeddings → cosine rank
    """

    def __init__(
        self,
        provider: EmbeddingProvider | None,
        pool_size: int = POOL_SIZE,
        limit: int = SEMANTIC_LIMIT,
    ) -> None:
        self.provider = provider
        self.pool_size = pool_size
        self.limit = limit

    @property
    def source(self) -> CandidateSource:
        return CandidateSource.SEMANTIC

    async def generate(
        self,
        es,
        requester: UserProfile,
        num_candidates: int = SEMANTIC_LIMIT,
    ) -> CandidateResult:
        if self.provider is None:
            raise ProviderUnavailable("Semantic retrieval needs an embedding provider")

        # 1. Requester embedding
        target = await profile_embedding(self.provider, requester)
        if not target:
            logger.info("No profile text to embed for user %s", requester.id)
            return self.result([])

        # 2. Candidate pool; profiles without a display name are not shown
        pool = [
            p for p in await recent_profiles(es, self.pool_size)
            if p.id != requester.id and p.display_name
        ]
        if not pool:
            return self.result([])

        # 3. + 4. Score and rank the pool
        similarities = await similarity_to(self.provider, target, pool)
        scored = [
            Candidate(profile=p, sources={self.source}, similarity=sim)
            for p, sim in zip(pool, similarities)
            if sim is not None
        ]
        scored.sort(key=lambda c: (-c.similarity, c.profile.id))

        return CandidateResult(
            generator_name=self.name,
            candidates=scored[: min(self.limit, num_candidates)],
        )
