"""Trending (popularity) candidate generator.

Returns the most-followed accounts, ordered by the denormalized
``followers_count`` counter.  The list is global: every requester gets the
same candidates before exclusion.
"""

import logging

from ...models import UserProfile
from ..stores.profiles import ProfileFilter, query_profiles
from .base import CandidateGenerator, CandidateResult, CandidateSource

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

TRENDING_LIMIT = 20


async def trending_profiles(es, limit: int = TRENDING_LIMIT) -> list[UserProfile]:
    """Top *limit* profiles by follower count, most followed first."""
    flt = ProfileFilter(order_by="followers_count", direction="desc")
    return await query_profiles(es, flt, limit=limit)


class TrendingCandidateGenerator(CandidateGenerator):
    """Returns the most popular accounts.

    ``requester`` is accepted for interface consistency but is not used –
    trending candidates are the same for every user.
    """

    def __init__(self, limit: int = TRENDING_LIMIT) -> None:
        self.limit = limit

    @property
    def source(self) -> CandidateSource:
        return CandidateSource.TRENDING

    async def generate(
        self,
        es,
        requester: UserProfile,
        num_candidates: int = TRENDING_LIMIT,
    ) -> CandidateResult:
        profiles = await trending_profiles(es, limit=min(self.limit, num_candidates))
        return self.result(profiles)
