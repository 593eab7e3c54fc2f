"""Ranking and selection of scored candidates."""

from datetime import datetime, timezone

from ..models import ScoredRecommendation
from .scoring import ScoredCandidate


def _timestamp(value: datetime | None) -> float:
    if value is None:
        return float("-inf")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def rank_key(item: ScoredCandidate) -> tuple:
    """Score desc, then most recently active, then id asc."""
    profile = item.candidate.profile
    return (-item.score, -_timestamp(profile.last_active), profile.id)


def rank_candidates(
    scored: list[ScoredCandidate],
    top_n: int,
    score_floor: float | None = None,
) -> list[ScoredRecommendation]:
    """Sort, optionally drop scores at or below *score_floor*, truncate to *top_n*."""
    if score_floor is not None:
        scored = [s for s in scored if s.score > score_floor]
    ranked = sorted(scored, key=rank_key)[: max(top_n, 0)]
    return [
        ScoredRecommendation(
            user_id=s.candidate.profile.id,
            username=s.candidate.profile.username or None,
            score=s.score,
            reason=s.reason,
        )
        for s in ranked
    ]
