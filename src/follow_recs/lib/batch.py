"""Scheduled recomputation of recommendations for every active user.

Users are processed one at a time, most recently active first.  A failure
for one user is logged and skipped; their stored list is left untouched.
Writes go through :class:`RecommendationWriteBatch`, so a run interrupted
midway leaves only whole, committed lists behind and can simply be rerun.
"""

import logging
from datetime import datetime, timezone

from pydantic import BaseModel

from ..config import Settings
from ..errors import NotFound, RetrievalError
from ..models import RecommendationList, UserProfile
from .engine import RecommendationEngine
from .stores.profiles import ProfileFilter, count_active_users, query_profiles
from .stores.recommendations import RecommendationWriteBatch

logger = logging.getLogger(__name__)


class BatchReport(BaseModel):
    processed: int = 0
    written: int = 0
    skipped: int = 0
    commits: int = 0
    small_userbase: bool = False


async def active_users(es, limit: int) -> list[UserProfile]:
    """Non-banned users, most recently active first."""
    flt = ProfileFilter(exclude_banned=True, order_by="last_active", direction="desc")
    return await query_profiles(es, flt, limit=limit)


async def run_batch(
    engine: RecommendationEngine,
    es,
    settings: Settings,
) -> BatchReport:
    """Recompute and store recommendations for up to ``batch_user_limit`` users."""
    users = await active_users(es, settings.batch_user_limit)
    # The user page is capped, so the community size comes from a count.
    population = await count_active_users(es)
    small = population <= settings.small_userbase_threshold
    bonus = settings.small_userbase_bonus if small else 0.0
    report = BatchReport(small_userbase=small)

    logger.info(
        "Generating recommendations for %d of %d users (small userbase: %s)",
        len(users),
        population,
        small,
    )

    async with RecommendationWriteBatch(es, settings.write_batch_size) as batch:
        for user in users:
            report.processed += 1
            try:
                items = await engine.recommend(
                    user.id,
                    top_n=settings.batch_top_n,
                    bonus=bonus,
                    requester=user,
                )
            except NotFound:
                logger.warning("Profile for user %s disappeared, skipping", user.id)
                report.skipped += 1
                continue
            except RetrievalError as exc:
                logger.warning("No candidates retrieved for user %s: %s", user.id, exc)
                report.skipped += 1
                continue
            except Exception:
                logger.exception("Error processing user %s", user.id)
                report.skipped += 1
                continue

            now = datetime.now(timezone.utc)
            await batch.add(user.id, RecommendationList(updated_at=now, items=items))

    report.written = batch.written
    report.commits = batch.commits
    logger.info(
        "Recommendations generation completed: %d written, %d skipped, %d commits",
        report.written,
        report.skipped,
        report.commits,
    )
    return report
