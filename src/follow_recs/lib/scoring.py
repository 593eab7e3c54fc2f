"""Candidate scoring.

Two schemes exist and a deployment uses exactly one of them
(``Settings.scoring_scheme``):

``additive``
    Weighted sum of social-graph provenance, shared communities, shared
    tags, relationship-status match and log-scaled popularity.  The reason
    is the largest single contribution; ties go to the earlier factor in
    that list.

``semantic``
    ``similarity * 0.7 + any_shared_tag * 0.3``.  A candidate without a
    known similarity contributes 0 for that term.

Scoring is pure: identical inputs always give identical output.
"""

import math
from typing import Literal

from pydantic import BaseModel

from ..config import ScoringWeights
from ..models import UserProfile
from .candidates.base import Candidate, CandidateSource

ScoringScheme = Literal["additive", "semantic"]

DEFAULT_REASON = "Suggested for you"
SEMANTIC_DEFAULT_REASON = "Similar interests and profile."


class ScoredCandidate(BaseModel):
    candidate: Candidate
    score: float
    reason: str


def shared_values(mine: list[str], theirs: list[str]) -> list[str]:
    """Values present in both lists, sorted, without duplicates."""
    return sorted(set(mine) & set(theirs))


def additive_score(
    requester: UserProfile,
    candidate: Candidate,
    weights: ScoringWeights,
) -> tuple[float, str]:
    profile = candidate.profile
    # (contribution, reason) in tie-break priority order
    factors: list[tuple[float, str]] = []

    if CandidateSource.SOCIAL_GRAPH in candidate.sources:
        factors.append((weights.social_graph, "Mutual/FoF"))

    communities = shared_values(requester.joined_communities, profile.joined_communities)
    if communities:
        factors.append((weights.community * len(communities), f"Communities: {len(communities)}"))

    tags = shared_values(requester.tags, profile.tags)
    if tags:
        factors.append((weights.interest * len(tags), f"Interests: {len(tags)}"))

    if requester.relationship_status and profile.relationship_status == requester.relationship_status:
        factors.append((weights.relationship_status, "Status"))

    if profile.followers_count > 0:
        factors.append((weights.popularity * math.log10(profile.followers_count), "Popular"))

    score = sum(value for value, _ in factors)
    reason = DEFAULT_REASON
    best = 0.0
    for value, label in factors:
        if value > best:
            best, reason = value, label
    return score, reason


def semantic_score(
    requester: UserProfile,
    candidate: Candidate,
    weights: ScoringWeights,
) -> tuple[float, str]:
    similarity = candidate.similarity or 0.0
    tags = shared_values(requester.tags, candidate.profile.tags)
    interest = 1.0 if tags else 0.0

    score = similarity * weights.semantic_similarity + interest * weights.semantic_interest
    reason = f"You both like {tags[0]}" if tags else SEMANTIC_DEFAULT_REASON
    return score, reason


def score_candidate(
    requester: UserProfile,
    candidate: Candidate,
    weights: ScoringWeights | None = None,
    scheme: ScoringScheme = "additive",
    bonus: float = 0.0,
) -> tuple[float, str]:
    """Return ``(score, reason)`` for one candidate under *scheme*.

    *bonus* is a flat amount added to every score (small-userbase boost).
    """
    weights = weights or ScoringWeights()
    if scheme == "additive":
        score, reason = additive_score(requester, candidate, weights)
    elif scheme == "semantic":
        score, reason = semantic_score(requester, candidate, weights)
    else:
        raise ValueError(f"Unknown scoring scheme: {scheme}")
    return score + bonus, reason


def score_candidates(
    requester: UserProfile,
    candidates: list[Candidate],
    weights: ScoringWeights | None = None,
    scheme: ScoringScheme = "additive",
    bonus: float = 0.0,
) -> list[ScoredCandidate]:
    scored: list[ScoredCandidate] = []
    for cand in candidates:
        score, reason = score_candidate(requester, cand, weights, scheme, bonus)
        scored.append(ScoredCandidate(candidate=cand, score=score, reason=reason))
    return scored
