"""Candidate generation for account recommendations.

Provides named candidate generators (one per retrieval strategy) and the
retriever that fans out to them and merges their results.
"""

import random

from ...config import Settings
from ..embeddings import EmbeddingProvider
from .base import (
    Candidate,
    CandidateGenerator,
    CandidateResult,
    CandidateSource,
)
from .popularity import TrendingCandidateGenerator
from .retriever import merge_candidates, retrieve_candidates
from .semantic import SemanticCandidateGenerator
from .shared_membership import (
    SharedCommunityCandidateGenerator,
    SharedTagCandidateGenerator,
)
from .social_graph import SocialGraphCandidateGenerator


def build_generators(
    settings: Settings,
    provider: EmbeddingProvider | None = None,
    rng: random.Random | None = None,
) -> list[CandidateGenerator]:
    """Generators for a deployment; semantic only with a provider."""
    generators: list[CandidateGenerator] = [
        SocialGraphCandidateGenerator(
            f1_limit=settings.f1_limit,
            f1_sample=settings.f1_sample,
            f2_limit=settings.f2_limit,
            f2_cap=settings.f2_cap,
            batch_size=settings.profile_batch_size,
            rng=rng,
        ),
        SharedTagCandidateGenerator(
            limit=settings.shared_tag_limit, max_values=settings.any_of_values
        ),
        SharedCommunityCandidateGenerator(
            limit=settings.shared_community_limit, max_values=settings.any_of_values
        ),
        TrendingCandidateGenerator(limit=settings.trending_limit),
    ]
    if provider is not None and settings.semantic_enabled:
        generators.append(
            SemanticCandidateGenerator(
                provider,
                pool_size=settings.semantic_pool_size,
                limit=settings.semantic_limit,
            )
        )
    return generators


__all__ = [
    "Candidate",
    "CandidateGenerator",
    "CandidateResult",
    "CandidateSource",
    "SemanticCandidateGenerator",
    "SharedCommunityCandidateGenerator",
    "SharedTagCandidateGenerator",
    "SocialGraphCandidateGenerator",
    "TrendingCandidateGenerator",
    "build_generators",
    "merge_candidates",
    "retrieve_candidates",
]
