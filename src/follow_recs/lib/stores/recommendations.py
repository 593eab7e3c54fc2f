"""Persistence of computed recommendation lists (``recommendations`` index).

One document per requesting user, always replaced wholesale.  Batch jobs
write through :class:`RecommendationWriteBatch`, which groups index
operations into bulk requests no larger than the configured maximum.
"""

import logging

from ...models import RecommendationList
from ..elasticsearch import unwrap_es_response

logger = logging.getLogger(__name__)

RECOMMENDATIONS_INDEX = "recommendations"

DEFAULT_MAX_OPERATIONS = 500


def recommendation_document(user_id: str, data: RecommendationList) -> dict:
    return {"user_id": user_id, **data.model_dump(mode="json")}


async def put_recommendations(es, user_id: str, data: RecommendationList) -> None:
    """Overwrite the stored list and ``updated_at`` for *user_id*."""
    await es.index(
        index=RECOMMENDATIONS_INDEX,
        id=user_id,
        document=recommendation_document(user_id, data),
    )


async def get_recommendations(es, user_id: str) -> RecommendationList | None:
    """Return the last stored list, or ``None`` when nothing was stored."""
    resp = await es.options(ignore_status=404).get(index=RECOMMENDATIONS_INDEX, id=user_id)
    data = unwrap_es_response(resp)
    if not data.get("found"):
        return None
    src = dict(data.get("_source") or {})
    src.pop("user_id", None)
    return RecommendationList.model_validate(src)


class RecommendationWriteBatch:
    """Accumulates recommendation writes and commits them via the bulk API.

    Use as an async context manager; pending operations are committed on a
    clean exit and discarded if the block raises.
    """

    def __init__(self, es, max_operations: int = DEFAULT_MAX_OPERATIONS) -> None:
        if max_operations < 1:
            raise ValueError("max_operations must be positive")
        self.es = es
        self.max_operations = max_operations
        self.commits = 0
        self.written = 0
        self._operations: list[dict] = []
        self._count = 0

    async def __aenter__(self) -> "RecommendationWriteBatch":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            await self.commit()

    @property
    def pending(self) -> int:
        return self._count

    async def add(self, user_id: str, data: RecommendationList) -> None:
        if self._count >= self.max_operations:
            await self.commit()
        self._operations.append({"index": {"_index": RECOMMENDATIONS_INDEX, "_id": user_id}})
        self._operations.append(recommendation_document(user_id, data))
        self._count += 1

    async def commit(self) -> None:
        if not self._count:
            return
        operations, count = self._operations, self._count
        self._operations, self._count = [], 0

        resp = await self.es.bulk(operations=operations)
        data = unwrap_es_response(resp)
        failed = 0
        if data.get("errors"):
            for item in data.get("items", []):
                result = item.get("index") or {}
                if result.get("error"):
                    failed += 1
                    logger.error(
                        "Failed to store recommendations for user %s: %s",
                        result.get("_id"),
                        result.get("error"),
                    )
        self.commits += 1
        self.written += count - failed
        logger.info("Committed %d recommendation writes (%d failed)", count, failed)
