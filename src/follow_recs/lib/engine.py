"""The recommendation pipeline: retrieve → score → rank → (optionally) store.

The batch job and the HTTP endpoint are thin adapters over
:class:`RecommendationEngine`; they only choose top-N, bonus and whether
to persist.
"""

import logging
import random
from datetime import datetime, timezone

from ..config import Settings
from ..errors import ProviderUnavailable
from ..models import RecommendationList, ScoredRecommendation, UserProfile
from .candidates import Candidate, CandidateGenerator, build_generators, retrieve_candidates
from .candidates.semantic import similarity_to
from .embeddings import EmbeddingProvider, profile_embedding
from .ranking import rank_candidates
from .scoring import score_candidates
from .stores.profiles import get_profile
from .stores.recommendations import put_recommendations

logger = logging.getLogger(__name__)


class RecommendationEngine:
    def __init__(
        self,
        es,
        settings: Settings,
        provider: EmbeddingProvider | None = None,
        generators: list[CandidateGenerator] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.es = es
        self.settings = settings
        self.provider = provider
        if generators is None:
            generators = build_generators(settings, provider, rng=rng)
        self.generators = generators

    async def _attach_similarities(self, requester: UserProfile, candidates: list[Candidate]) -> bool:
        """Fill in missing similarities for the semantic scheme.

        Returns ``False`` when the requester or the candidates cannot be
        embedded; the semantic scheme is unusable for this request then.
        """
        try:
            target = await profile_embedding(self.provider, requester)
            if not target:
                return False
            missing = [c for c in candidates if c.similarity is None]
            if not missing:
                return True
            sims = await similarity_to(self.provider, target, [c.profile for c in missing])
        except ProviderUnavailable as exc:
            logger.warning("Similarity enrichment failed for user %s: %s", requester.id, exc)
            return False
        for cand, sim in zip(missing, sims):
            cand.similarity = sim
        return True

    async def recommend(
        self,
        user_id: str,
        *,
        top_n: int | None = None,
        bonus: float = 0.0,
        requester: UserProfile | None = None,
    ) -> list[ScoredRecommendation]:
        """Compute ranked recommendations for *user_id*.

        Raises ``NotFound`` if the requester has no profile and
        ``RetrievalError`` if no candidate strategy succeeded.  When the
        semantic scheme is configured but embeddings are unavailable, the
        request is scored with the additive scheme instead.
        """
        if requester is None:
            requester = await get_profile(self.es, user_id)
        if top_n is None:
            top_n = self.settings.interactive_top_n

        candidates = await retrieve_candidates(self.es, requester, self.generators)

        scheme = self.settings.scoring_scheme
        score_floor = self.settings.effective_score_floor
        if scheme == "semantic" and not await self._attach_similarities(requester, candidates):
            logger.warning(
                "Semantic scoring unavailable for user %s, falling back to additive", requester.id
            )
            scheme = "additive"
            score_floor = self.settings.score_floor

        scored = score_candidates(
            requester,
            candidates,
            weights=self.settings.weights,
            scheme=scheme,
            bonus=bonus,
        )
        # Bonus is applied before the floor so small communities still see results.
        return rank_candidates(scored, top_n, score_floor)

    async def refresh(self, user_id: str, *, top_n: int | None = None) -> RecommendationList:
        """Recompute and persist recommendations for *user_id*."""
        items = await self.recommend(user_id, top_n=top_n)
        data = RecommendationList(updated_at=datetime.now(timezone.utc), items=items)
        await put_recommendations(self.es, user_id, data)
        return data
