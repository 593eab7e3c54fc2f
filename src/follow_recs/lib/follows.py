"""Follow toggling and counter reconciliation.

The toggle is the only writer of follow edges and denormalized counters.
It serialises on the ordered ``(follower, followee)`` pair with a lock
document created via ``op_type=create``: a second toggle on the same pair
gets a 409, which surfaces as :class:`TransactionConflict` and is retried
with backoff.  Counter changes use an atomic scripted update floored at
zero, so toggles on different pairs touching the same user cannot lose
updates.  Any drift left by a crash between the edge write and the
counter updates is repaired by :func:`reconcile_counters`.  A counter update
that fails is rolled back together with the edge write before the error
propagates; a rollback that fails too is logged with the pair to reconcile.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from ..errors import InvalidArgument, TransactionConflict
from ..models import FollowState, FollowToggleResult
from .elasticsearch import is_conflict, unwrap_es_response
from .stores.graph import FOLLOWS_INDEX, count_followers, count_following, edge_id, get_edge
from .stores.profiles import USERS_INDEX, get_profile

logger = logging.getLogger(__name__)

LOCKS_INDEX = "follow_locks"

MAX_RETRIES = 5
RETRY_BACKOFF_SECONDS = 0.05
LOCK_TTL_SECONDS = 30.0

COUNTER_SCRIPT = (
    "def current = ctx._source[params.field] == null ? 0 : ctx._source[params.field];"
    " ctx._source[params.field] = Math.max(0, current + params.delta);"
)


async def _acquire_lock(es, follower_id: str, followee_id: str, ttl: float) -> str:
    lock_id = edge_id(follower_id, followee_id)
    now = datetime.now(timezone.utc)
    resp = await es.options(ignore_status=409).create(
        index=LOCKS_INDEX,
        id=lock_id,
        document={"acquired_at": now.isoformat()},
    )
    if not is_conflict(resp):
        return lock_id

    # Break locks left behind by a crashed holder; the caller retries.
    held = unwrap_es_response(
        await es.options(ignore_status=404).get(index=LOCKS_INDEX, id=lock_id)
    )
    acquired_at = (held.get("_source") or {}).get("acquired_at")
    if acquired_at and datetime.fromisoformat(acquired_at) < now - timedelta(seconds=ttl):
        logger.warning("Breaking stale follow lock %s acquired at %s", lock_id, acquired_at)
        await es.options(ignore_status=404).delete(index=LOCKS_INDEX, id=lock_id)
    raise TransactionConflict(f"Follow toggle already in progress for {lock_id}")


async def _release_lock(es, lock_id: str) -> None:
    await es.options(ignore_status=404).delete(index=LOCKS_INDEX, id=lock_id)


async def _adjust_counter(es, user_id: str, field: str, delta: int) -> None:
    await es.update(
        index=USERS_INDEX,
        id=user_id,
        script={
            "source": COUNTER_SCRIPT,
            "lang": "painless",
            "params": {"field": field, "delta": delta},
        },
        retry_on_conflict=3,
    )


async def _compensate(follower_id: str, followee_id: str, undo) -> None:
    try:
        await undo
    except Exception:
        logger.exception(
            "Rollback of follow toggle %s -> %s failed; reconcile counters for both users",
            follower_id,
            followee_id,
        )


async def _apply_counters(es, follower_id: str, followee_id: str, delta: int) -> None:
    await _adjust_counter(es, followee_id, "followers_count", delta)
    try:
        await _adjust_counter(es, follower_id, "following_count", delta)
    except Exception:
        await _compensate(
            follower_id,
            followee_id,
            _adjust_counter(es, followee_id, "followers_count", -delta),
        )
        raise


async def _toggle_once(es, follower_id: str, followee_id: str, lock_ttl: float) -> FollowToggleResult:
    lock_id = await _acquire_lock(es, follower_id, followee_id, lock_ttl)
    try:
        follower = await get_profile(es, follower_id)
        followee = await get_profile(es, followee_id)
        edge = await get_edge(es, follower_id, followee_id)
        doc_id = edge_id(follower_id, followee_id)

        if edge is not None:
            await es.delete(index=FOLLOWS_INDEX, id=doc_id, refresh="wait_for")
            try:
                await _apply_counters(es, follower_id, followee_id, -1)
            except Exception:
                logger.warning("Unfollow %s -> %s failed, restoring edge", follower_id, followee_id)
                await _compensate(
                    follower_id,
                    followee_id,
                    es.index(
                        index=FOLLOWS_INDEX,
                        id=doc_id,
                        document=edge.model_dump(mode="json"),
                        refresh="wait_for",
                    ),
                )
                raise
            logger.info("%s unfollowed %s", follower_id, followee_id)
            return FollowToggleResult(
                state=FollowState.NOT_FOLLOWING,
                followers_count=max(followee.followers_count - 1, 0),
                following_count=max(follower.following_count - 1, 0),
            )

        await es.index(
            index=FOLLOWS_INDEX,
            id=doc_id,
            document={
                "follower_id": follower_id,
                "followee_id": followee_id,
                "followed_at": datetime.now(timezone.utc).isoformat(),
            },
            refresh="wait_for",
        )
        try:
            await _apply_counters(es, follower_id, followee_id, 1)
        except Exception:
            logger.warning("Follow %s -> %s failed, removing edge", follower_id, followee_id)
            await _compensate(
                follower_id,
                followee_id,
                es.options(ignore_status=404).delete(
                    index=FOLLOWS_INDEX, id=doc_id, refresh="wait_for"
                ),
            )
            raise
        logger.info("%s followed %s", follower_id, followee_id)
        return FollowToggleResult(
            state=FollowState.FOLLOWING,
            followers_count=followee.followers_count + 1,
            following_count=follower.following_count + 1,
        )
    finally:
        await _release_lock(es, lock_id)


async def toggle_follow(
    es,
    follower_id: str,
    followee_id: str,
    *,
    max_retries: int = MAX_RETRIES,
    backoff: float = RETRY_BACKOFF_SECONDS,
    lock_ttl: float = LOCK_TTL_SECONDS,
) -> FollowToggleResult:
    """Follow *followee_id* if not following, otherwise unfollow.

    Raises ``InvalidArgument`` for self-follows, ``NotFound`` for unknown
    users and ``TransactionConflict`` once *max_retries* attempts collided.
    """
    if follower_id == followee_id:
        raise InvalidArgument("Cannot follow yourself")

    attempt = 1
    while True:
        try:
            return await _toggle_once(es, follower_id, followee_id, lock_ttl)
        except TransactionConflict:
            if attempt >= max_retries:
                logger.warning(
                    "Follow toggle %s -> %s gave up after %d attempts",
                    follower_id,
                    followee_id,
                    attempt,
                )
                raise
            await asyncio.sleep(backoff * attempt)
            attempt += 1


async def reconcile_counters(es, user_id: str) -> tuple[int, int]:
    """Recount edges for *user_id* and overwrite both counters.

    Returns ``(followers_count, following_count)``.
    """
    followers = await count_followers(es, user_id)
    following = await count_following(es, user_id)
    await es.update(
        index=USERS_INDEX,
        id=user_id,
        doc={"followers_count": followers, "following_count": following},
        retry_on_conflict=3,
    )
    return followers, following
