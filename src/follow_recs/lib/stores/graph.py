"""Read access to the follow graph (``follows`` index).

Each edge is a single document with id ``"{follower_id}:{followee_id}"``;
the following direction is queried by ``follower_id`` and the followers
direction by ``followee_id``.  Edges are written only by
:mod:`follow_recs.lib.follows`.
"""

import base64
import json
import logging

from ...errors import InvalidArgument
from ...models import FollowEdge, FollowersPage
from ..elasticsearch import iter_hits, unwrap_es_response

logger = logging.getLogger(__name__)

FOLLOWS_INDEX = "follows"

DEFAULT_PAGE_SIZE = 20

# Page size used when walking an entire following set.
SCAN_PAGE_SIZE = 500


def edge_id(follower_id: str, followee_id: str) -> str:
    return f"{follower_id}:{followee_id}"


def encode_cursor(sort_values: list) -> str:
    raw = json.dumps(sort_values, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> list:
    try:
        values = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
    except (ValueError, UnicodeError) as exc:
        raise InvalidArgument("Malformed pagination cursor") from exc
    if not isinstance(values, list):
        raise InvalidArgument("Malformed pagination cursor")
    return values


async def get_edge(es, follower_id: str, followee_id: str) -> FollowEdge | None:
    resp = await es.options(ignore_status=404).get(
        index=FOLLOWS_INDEX, id=edge_id(follower_id, followee_id)
    )
    data = unwrap_es_response(resp)
    if not data.get("found"):
        return None
    return FollowEdge.model_validate(data.get("_source") or {})


async def _edge_page(
    es,
    key_field: str,
    other_field: str,
    user_id: str,
    limit: int,
    search_after: list | None = None,
) -> list[dict]:
    """One page of edges where ``key_field == user_id``, newest first."""
    kwargs = {
        "index": FOLLOWS_INDEX,
        "query": {"bool": {"filter": [{"term": {key_field: user_id}}]}},
        "size": limit,
        "sort": [
            {"followed_at": {"order": "desc"}},
            {other_field: {"order": "asc"}},
        ],
    }
    if search_after is not None:
        kwargs["search_after"] = search_after
    resp = await es.search(**kwargs)
    return iter_hits(resp)


async def get_following(es, user_id: str, limit: int) -> list[str]:
    """Ids of up to *limit* users that *user_id* follows, most recent first."""
    hits = await _edge_page(es, "follower_id", "followee_id", user_id, limit)
    ids: list[str] = []
    for hit in hits:
        followee = (hit.get("_source") or {}).get("followee_id")
        if followee:
            ids.append(followee)
    return ids


async def get_all_following(es, user_id: str, page_size: int = SCAN_PAGE_SIZE) -> set[str]:
    """The complete set of ids *user_id* follows (walks every page)."""
    following: set[str] = set()
    search_after = None
    while True:
        hits = await _edge_page(
            es, "follower_id", "followee_id", user_id, page_size, search_after
        )
        for hit in hits:
            followee = (hit.get("_source") or {}).get("followee_id")
            if followee:
                following.add(followee)
        if len(hits) < page_size:
            return following
        search_after = hits[-1].get("sort")
        if search_after is None:
            return following


async def _paginate(
    es,
    key_field: str,
    other_field: str,
    user_id: str,
    limit: int,
    cursor: str | None,
) -> FollowersPage:
    search_after = decode_cursor(cursor) if cursor else None
    hits = await _edge_page(es, key_field, other_field, user_id, limit, search_after)

    items = [FollowEdge.model_validate(hit.get("_source") or {}) for hit in hits]
    next_cursor = None
    # A full page means there may be more; a short page is the last one.
    if len(hits) == limit and hits[-1].get("sort") is not None:
        next_cursor = encode_cursor(hits[-1]["sort"])
    return FollowersPage(items=items, next_cursor=next_cursor)


async def get_followers(
    es,
    user_id: str,
    limit: int = DEFAULT_PAGE_SIZE,
    cursor: str | None = None,
) -> FollowersPage:
    """Cursor-paginated followers of *user_id*, newest first."""
    return await _paginate(es, "followee_id", "follower_id", user_id, limit, cursor)


async def get_following_page(
    es,
    user_id: str,
    limit: int = DEFAULT_PAGE_SIZE,
    cursor: str | None = None,
) -> FollowersPage:
    """Cursor-paginated follows of *user_id*, newest first."""
    return await _paginate(es, "follower_id", "followee_id", user_id, limit, cursor)


async def count_followers(es, user_id: str) -> int:
    resp = await es.count(
        index=FOLLOWS_INDEX, query={"bool": {"filter": [{"term": {"followee_id": user_id}}]}}
    )
    return int(unwrap_es_response(resp).get("count", 0))


async def count_following(es, user_id: str) -> int:
    resp = await es.count(
        index=FOLLOWS_INDEX, query={"bool": {"filter": [{"term": {"follower_id": user_id}}]}}
    )
    return int(unwrap_es_response(resp).get("count", 0))
