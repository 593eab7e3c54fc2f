"""
Out-of-band jobs, invoked by an external scheduler.

  recommendations - recompute stored recommendations for active users.
                    Intended schedule: ``RECS_BATCH_SCHEDULE`` (cron,
                    default ``0 0 * * *``) in ``RECS_BATCH_TIMEZONE``
                    (default UTC).
  reconcile       - recount follow edges and overwrite the denormalized
                    counters of the given users (all active users when
                    none are given).

Usage:
  python -m follow_recs.jobs recommendations
  python -m follow_recs.jobs reconcile [USER_ID ...]
"""

import asyncio
import logging
import sys

from elasticsearch import AsyncElasticsearch

from .config import Settings, get_settings
from .lib.batch import BatchReport, active_users, run_batch
from .lib.embeddings import HttpEmbeddingProvider
from .lib.engine import RecommendationEngine
from .lib.follows import reconcile_counters

logger = logging.getLogger(__name__)


async def run_scheduled_batch(es, settings: Settings) -> BatchReport:
    provider = None
    if settings.embedding_url:
        provider = HttpEmbeddingProvider(settings.embedding_url, timeout=settings.embedding_timeout)
        await provider.start()
    try:
        engine = RecommendationEngine(es, settings, provider=provider)
        return await run_batch(engine, es, settings)
    finally:
        if provider is not None:
            await provider.stop()


async def run_reconciliation(es, settings: Settings, user_ids: list[str] | None = None) -> int:
    """Reconcile counters; returns how many users were fixed up."""
    if not user_ids:
        user_ids = [u.id for u in await active_users(es, settings.batch_user_limit)]
    done = 0
    for user_id in user_ids:
        try:
            followers, following = await reconcile_counters(es, user_id)
        except Exception:
            logger.exception("Counter reconciliation failed for user %s", user_id)
            continue
        logger.info(
            "Reconciled %s: followers=%d following=%d", user_id, followers, following
        )
        done += 1
    return done


async def _main(argv: list[str]) -> int:
    if not argv or argv[0] not in ("recommendations", "reconcile"):
        print(__doc__, file=sys.stderr)
        return 2

    settings = get_settings()
    es = AsyncElasticsearch(settings.es_url, api_key=settings.es_api_key)
    try:
        if argv[0] == "recommendations":
            report = await run_scheduled_batch(es, settings)
            logger.info("Batch report: %s", report.model_dump())
        else:
            await run_reconciliation(es, settings, argv[1:])
    finally:
        await es.close()
    return 0


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(_main(sys.argv[1:])))
