"""Base abstraction for candidate generators.

Each generator has a unique name and an async `generate` method that returns
a `CandidateResult` containing candidate accounts for a requesting user.
Generators are independent failure domains: the retriever runs them
concurrently and drops any that raise.
"""

from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel, Field

from ...models import UserProfile


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class CandidateSource(str, Enum):
    """Retrieval strategies; doubles as the generator name."""

    SOCIAL_GRAPH = "social_graph"
    SHARED_TAG = "shared_tag"
    SHARED_COMMUNITY = "shared_community"
    TRENDING = "trending"
    SEMANTIC = "semantic"


class Candidate(BaseModel):
    """A user under consideration for recommendation, not yet scored."""

    profile: UserProfile
    sources: set[CandidateSource] = Field(
        default_factory=set, description="Every strategy that surfaced this user"
    )
    similarity: float | None = Field(
        None, description="Cosine similarity to the requester, when known"
    )

    @property
    def id(self) -> str:
        return self.profile.id


class CandidateResult(BaseModel):
    """The output of a candidate generator invocation."""

    generator_name: str = Field(..., description="Name of the generator that produced these candidates")
    candidates: list[Candidate] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class CandidateGenerator(ABC):
    """Abstract base class for named candidate generators.

    Subclasses must implement `source` (property) and `generate`.
    """

    @property
    @abstractmethod
    def source(self) -> CandidateSource:
        """Strategy recorded as provenance on every candidate produced."""
        ...

    @property
    def name(self) -> str:
        return self.source.value

    @abstractmethod
    async def generate(
        self,
        es,
        requester: UserProfile,
        num_candidates: int = 20,
    ) -> CandidateResult:
        """Produce candidate accounts for the given requester.

        Parameters
        ----------
        es:
            An ``AsyncElasticsearch`` client instance.
        requester:
            Profile of the user recommendations are computed for.
        num_candidates:
            Maximum number of candidates to return.

        Returns
        -------
        CandidateResult
        """
        ...

    def result(self, profiles: list[UserProfile]) -> CandidateResult:
        """Wrap *profiles* as candidates tagged with this generator's source."""
        return CandidateResult(
            generator_name=self.name,
            candidates=[Candidate(profile=p, sources={self.source}) for p in profiles],
        )
