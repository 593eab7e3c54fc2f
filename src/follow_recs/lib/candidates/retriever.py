"""Fan-out / fan-in candidate retrieval.

All generators run concurrently together with a read of the requester's
complete following set.  Generator failures are logged and isolated; only
when every generator fails is :class:`RetrievalError` raised.  Results are
merged by user id, keeping the first profile seen and the union of every
source that surfaced it, then filtered so the requester, users they
already follow, and banned users never appear.
"""

import asyncio
import logging
from typing import Sequence

from ...errors import ProviderUnavailable, RetrievalError
from ...models import UserProfile
from ..stores.graph import get_all_following
from .base import Candidate, CandidateGenerator, CandidateResult

logger = logging.getLogger(__name__)

DEFAULT_NUM_CANDIDATES = 50


async def _run_generator(
    gen: CandidateGenerator,
    es,
    requester: UserProfile,
    num_candidates: int,
) -> CandidateResult | None:
    """Run one generator; ``None`` marks a failed strategy."""
    try:
        return await gen.generate(es, requester, num_candidates=num_candidates)
    except ProviderUnavailable as exc:
        logger.warning("Candidate generator '%s' unavailable: %s", gen.name, exc)
    except Exception:
        logger.exception("Candidate generator '%s' failed for user %s", gen.name, requester.id)
    return None


def merge_candidates(
    results: Sequence[CandidateResult],
    excluded_ids: set[str],
) -> list[Candidate]:
    """Union candidates by id, preserving first-seen order and profile.

    Later occurrences only contribute their sources (and a similarity when
    none is known yet).
    """
    merged: dict[str, Candidate] = {}
    for result in results:
        for cand in result.candidates:
            uid = cand.profile.id
            if not uid or uid in excluded_ids or cand.profile.is_banned:
                continue
            existing = merged.get(uid)
            if existing is None:
                merged[uid] = cand.model_copy(update={"sources": set(cand.sources)})
                continue
            existing.sources |= cand.sources
            if existing.similarity is None and cand.similarity is not None:
                existing.similarity = cand.similarity
    return list(merged.values())


async def retrieve_candidates(
    es,
    requester: UserProfile,
    generators: Sequence[CandidateGenerator],
    num_candidates: int = DEFAULT_NUM_CANDIDATES,
) -> list[Candidate]:
    """Return de-duplicated candidates for *requester* from every generator."""
    if not generators:
        raise RetrievalError("No candidate generators configured")

    following_task = asyncio.ensure_future(get_all_following(es, requester.id))
    results = await asyncio.gather(
        *(_run_generator(gen, es, requester, num_candidates) for gen in generators)
    )

    try:
        following = await following_task
    except Exception as exc:
        logger.exception("Could not read following set for user %s", requester.id)
        raise RetrievalError(f"Following set unavailable for {requester.id}") from exc

    succeeded = [r for r in results if r is not None]
    if not succeeded:
        raise RetrievalError(f"All candidate strategies failed for {requester.id}")

    excluded = set(following)
    excluded.add(requester.id)
    candidates = merge_candidates(succeeded, excluded)

    logger.info(
        "Retrieved %d candidates for user %s (%d/%d strategies ok)",
        len(candidates),
        requester.id,
        len(succeeded),
        len(generators),
    )
    return candidates
