"""Friend-of-friend candidate generator.

Walks one hop beyond the requester's follows:

1. Read up to ``f1_limit`` of the requester's follows.
2. Randomly sample up to ``f1_sample`` of them.
3. Read up to ``f2_limit`` follows of each sampled user, concurrently.
4. Union the ids (first occurrence order), cap at ``f2_cap``.
5. Fetch the profiles in batches of ``batch_size`` ids.

The requester and users they already follow are removed later by the
retriever, not here.
"""

import asyncio
import logging
import random

from ...models import UserProfile
from ..stores.graph import get_following
from ..stores.profiles import get_profiles_by_ids
from .base import CandidateGenerator, CandidateResult, CandidateSource

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

F1_LIMIT = 50
F1_SAMPLE = 5
F2_LIMIT = 10
F2_CAP = 30
BATCH_SIZE = 10


async def friend_of_friend_ids(
    es,
    user_id: str,
    *,
    f1_limit: int = F1_LIMIT,
    f1_sample: int = F1_SAMPLE,
    f2_limit: int = F2_LIMIT,
    f2_cap: int = F2_CAP,
    rng: random.Random | None = None,
) -> list[str]:
    """Return the de-duplicated second-degree ids reachable from *user_id*."""
    first_degree = await get_following(es, user_id, f1_limit)
    if not first_degree:
        return []

    rng = rng or random.Random()
    sampled = rng.sample(first_degree, min(f1_sample, len(first_degree)))

    second_degree = await asyncio.gather(
        *(get_following(es, uid, f2_limit) for uid in sampled)
    )

    # dict keeps insertion order, so the cap is applied deterministically
    merged = dict.fromkeys(uid for follows in second_degree for uid in follows)
    return list(merged)[:f2_cap]


class SocialGraphCandidateGenerator(CandidateGenerator):
    """Candidates followed by the people the requester follows."""

    def __init__(
        self,
        f1_limit: int = F1_LIMIT,
        f1_sample: int = F1_SAMPLE,
        f2_limit: int = F2_LIMIT,
        f2_cap: int = F2_CAP,
        batch_size: int = BATCH_SIZE,
        rng: random.Random | None = None,
    ) -> None:
        self.f1_limit = f1_limit
        self.f1_sample = f1_sample
        self.f2_limit = f2_limit
        self.f2_cap = f2_cap
        self.batch_size = batch_size
        self.rng = rng or random.Random()

    @property
    def source(self) -> CandidateSource:
        return CandidateSource.SOCIAL_GRAPH

    async def generate(
        self,
        es,
        requester: UserProfile,
        num_candidates: int = F2_CAP,
    ) -> CandidateResult:
        ids = await friend_of_friend_ids(
            es,
            requester.id,
            f1_limit=self.f1_limit,
            f1_sample=self.f1_sample,
            f2_limit=self.f2_limit,
            f2_cap=min(self.f2_cap, num_candidates),
            rng=self.rng,
        )
        if not ids:
            logger.info("No friend-of-friend ids for user %s", requester.id)
            return self.result([])

        profiles = await get_profiles_by_ids(es, ids, batch_size=self.batch_size)
        return self.result(profiles)
