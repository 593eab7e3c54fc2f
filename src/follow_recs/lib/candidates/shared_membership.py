"""Shared-tag and shared-community candidate generators.

Both run a single any-of query against the ``users`` index using the first
``max_values`` entries of the requester's tags (or communities).  A
requester with nothing to match yields no candidates without touching the
store.
"""

import logging

from ...models import UserProfile
from ..stores.profiles import MAX_ANY_OF_VALUES, ProfileFilter, query_profiles
from .base import CandidateGenerator, CandidateResult, CandidateSource

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20


class SharedTagCandidateGenerator(CandidateGenerator):
    """Users sharing at least one interest tag with the requester."""

    def __init__(self, limit: int = DEFAULT_LIMIT, max_values: int = MAX_ANY_OF_VALUES) -> None:
        self.limit = limit
        self.max_values = max_values

    @property
    def source(self) -> CandidateSource:
        return CandidateSource.SHARED_TAG

    async def generate(
        self,
        es,
        requester: UserProfile,
        num_candidates: int = DEFAULT_LIMIT,
    ) -> CandidateResult:
        if not requester.tags:
            return self.result([])
        flt = ProfileFilter(tags_any=requester.tags[: self.max_values])
        profiles = await query_profiles(es, flt, limit=min(self.limit, num_candidates))
        return self.result(profiles)


class SharedCommunityCandidateGenerator(CandidateGenerator):
    """Users belonging to at least one of the requester's communities."""

    def __init__(self, limit: int = DEFAULT_LIMIT, max_values: int = MAX_ANY_OF_VALUES) -> None:
        self.limit = limit
        self.max_values = max_values

    @property
    def source(self) -> CandidateSource:
        return CandidateSource.SHARED_COMMUNITY

    async def generate(
        self,
        es,
        requester: UserProfile,
        num_candidates: int = DEFAULT_LIMIT,
    ) -> CandidateResult:
        if not requester.joined_communities:
            return self.result([])
        flt = ProfileFilter(communities_any=requester.joined_communities[: self.max_values])
        profiles = await query_profiles(es, flt, limit=min(self.limit, num_candidates))
        return self.result(profiles)
