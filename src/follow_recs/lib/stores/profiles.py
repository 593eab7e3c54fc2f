"""Read access to the ``users`` index.

The recommendation core never writes profiles; the only profile mutations
in this package are the counter updates made by the follow toggle.
"""

import asyncio
import logging
from typing import Literal

from pydantic import BaseModel, Field

from ...errors import InvalidArgument, NotFound
from ...models import UserProfile
from ..elasticsearch import bool_query, iter_hits, unwrap_es_response

logger = logging.getLogger(__name__)

USERS_INDEX = "users"

# Upper bound on values in one any-of / id lookup (store query constraint).
MAX_ANY_OF_VALUES = 10

SORTABLE_FIELDS = {"followers_count", "last_active", "joined_at"}


class ProfileFilter(BaseModel):
    """Constraints for :func:`query_profiles`.  Empty filter matches everyone."""

    tags_any: list[str] | None = None
    communities_any: list[str] | None = None
    ids: list[str] | None = None
    exclude_banned: bool = False
    order_by: str | None = None
    direction: Literal["asc", "desc"] = "desc"


def build_profile_search(flt: ProfileFilter) -> tuple[dict, list[dict]]:
    """Translate a :class:`ProfileFilter` into an ES ``(query, sort)`` pair.

    Raises :class:`InvalidArgument` for filters the store cannot execute.
    """
    filters: list[dict] = []
    must_not: list[dict] = []

    for field, values in (
        ("tags", flt.tags_any),
        ("joined_communities", flt.communities_any),
    ):
        if values is None:
            continue
        if not values:
            raise InvalidArgument(f"Empty any-of filter on '{field}'")
        if len(values) > MAX_ANY_OF_VALUES:
            raise InvalidArgument(
                f"Any-of filter on '{field}' accepts at most {MAX_ANY_OF_VALUES} values"
            )
        filters.append({"terms": {field: list(values)}})

    if flt.ids is not None:
        if len(flt.ids) > MAX_ANY_OF_VALUES:
            raise InvalidArgument(f"Id lookup accepts at most {MAX_ANY_OF_VALUES} ids")
        filters.append({"terms": {"id": list(flt.ids)}})

    if flt.exclude_banned:
        must_not.append({"term": {"is_banned": True}})

    sort: list[dict] = []
    if flt.order_by is not None:
        if flt.order_by not in SORTABLE_FIELDS:
            raise InvalidArgument(f"Cannot order profiles by '{flt.order_by}'")
        sort.append({flt.order_by: {"order": flt.direction, "missing": "_last"}})
        sort.append({"id": {"order": "asc"}})

    return bool_query(filters, must_not), sort


def profile_from_source(src: dict, doc_id: str | None = None) -> UserProfile:
    data = dict(src)
    if not data.get("id") and doc_id is not None:
        data["id"] = doc_id
    return UserProfile.model_validate(data)


async def get_profile(es, user_id: str) -> UserProfile:
    """Fetch one profile by id; raises :class:`NotFound` when missing."""
    resp = await es.options(ignore_status=404).get(index=USERS_INDEX, id=user_id)
    data = unwrap_es_response(resp)
    if not data.get("found"):
        raise NotFound(f"User profile not found: {user_id}")
    return profile_from_source(data.get("_source") or {}, data.get("_id"))


async def query_profiles(es, flt: ProfileFilter, limit: int) -> list[UserProfile]:
    """Run a profile query and return at most *limit* profiles."""
    query, sort = build_profile_search(flt)
    kwargs = {"index": USERS_INDEX, "query": query, "size": limit}
    if sort:
        kwargs["sort"] = sort
    resp = await es.search(**kwargs)

    profiles: list[UserProfile] = []
    for hit in iter_hits(resp):
        src = hit.get("_source")
        if not src:
            continue
        profiles.append(profile_from_source(src, hit.get("_id")))
    return profiles


async def count_active_users(es) -> int:
    """Number of non-banned users, independent of any page size."""
    query, _ = build_profile_search(ProfileFilter(exclude_banned=True))
    resp = await es.count(index=USERS_INDEX, query=query)
    return int(unwrap_es_response(resp).get("count", 0))


def chunk(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


async def get_profiles_by_ids(
    es,
    user_ids: list[str],
    batch_size: int = MAX_ANY_OF_VALUES,
) -> list[UserProfile]:
    """Fetch many profiles, ``batch_size`` ids per store query, concurrently.

    Missing ids are skipped.  The result follows the order of *user_ids*.
    """
    if not user_ids:
        return []
    batches = chunk(list(user_ids), batch_size)
    results = await asyncio.gather(
        *(query_profiles(es, ProfileFilter(ids=batch), limit=len(batch)) for batch in batches)
    )
    by_id = {p.id: p for batch in results for p in batch}
    return [by_id[uid] for uid in user_ids if uid in by_id]
