"""Shared fixtures: an in-memory stand-in for ``AsyncElasticsearch``.

``MemoryEs`` understands exactly the request shapes the stores send
(``bool`` filters with ``term``/``terms``/``ids``, sorted searches with
``search_after``, ``create`` conflicts, the counter update script and
bulk index operations).
"""

import copy
import functools
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _field_values(src: dict, field: str) -> list:
    value = src.get(field)
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _matches(src: dict, doc_id: str, query: dict | None) -> bool:
    if not query or "match_all" in query:
        return True
    if "bool" in query:
        clause = query["bool"]
        return all(_matches(src, doc_id, q) for q in clause.get("filter", [])) and not any(
            _matches(src, doc_id, q) for q in clause.get("must_not", [])
        )
    if "term" in query:
        ((field, value),) = query["term"].items()
        if isinstance(value, dict):
            value = value["value"]
        return value in _field_values(src, field)
    if "terms" in query:
        ((field, values),) = query["terms"].items()
        return bool(set(_field_values(src, field)) & set(values))
    if "ids" in query:
        return doc_id in query["ids"]["values"]
    raise NotImplementedError(f"MemoryEs does not support query {query!r}")


def _sort_specs(sort: list | None) -> list[tuple[str, str]]:
    specs = []
    for item in sort or []:
        ((field, opts),) = item.items()
        order = opts.get("order", "asc") if isinstance(opts, dict) else opts
        specs.append((field, order))
    return specs


def _compare(a: list, b: list, specs: list[tuple[str, str]]) -> int:
    for (_, order), av, bv in zip(specs, a, b):
        if av == bv:
            continue
        # missing values sort last in either direction
        if av is None:
            return 1
        if bv is None:
            return -1
        result = -1 if av < bv else 1
        return result if order == "asc" else -result
    return 0


class MemoryEs:
    def __init__(self) -> None:
        self.indices: dict[str, dict[str, dict]] = defaultdict(dict)
        self.calls: list[tuple[str, dict]] = []
        self.fail_when: Callable[[str, dict | None], bool] | None = None
        self._clock = 0

    # -- seeding helpers ---------------------------------------------------

    def next_time(self) -> str:
        self._clock += 1
        return (BASE_TIME + timedelta(seconds=self._clock)).isoformat()

    def add_user(self, user_id: str, **fields: Any) -> dict:
        doc = {
            "id": user_id,
            "username": fields.pop("username", user_id),
            "display_name": fields.pop("display_name", user_id.title()),
            "followers_count": 0,
            "following_count": 0,
            **fields,
        }
        self.indices["users"][user_id] = doc
        return doc

    def add_follow(self, follower_id: str, followee_id: str, followed_at: str | None = None) -> None:
        self.indices["follows"][f"{follower_id}:{followee_id}"] = {
            "follower_id": follower_id,
            "followee_id": followee_id,
            "followed_at": followed_at or self.next_time(),
        }

    def source(self, index: str, doc_id: str) -> dict | None:
        doc = self.indices[index].get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    # -- client API ----------------------------------------------------------

    def options(self, **kwargs):
        return self

    async def get(self, *, index: str, id: str, **kwargs):
        self.calls.append(("get", {"index": index, "id": id}))
        doc = self.indices[index].get(id)
        if doc is None:
            return {"_index": index, "_id": id, "found": False}
        return {"_index": index, "_id": id, "found": True, "_source": copy.deepcopy(doc)}

    async def search(self, *, index: str, query=None, size: int = 10, sort=None,
                     search_after=None, **kwargs):
        self.calls.append(("search", {"index": index, "query": query, "size": size,
                                      "sort": sort, "search_after": search_after}))
        if self.fail_when is not None and self.fail_when(index, query):
            raise ConnectionError(f"search on {index} failed")

        specs = _sort_specs(sort)
        rows = []
        for doc_id, src in self.indices[index].items():
            if _matches(src, doc_id, query):
                values = [src.get(field) for field, _ in specs]
                rows.append((values, doc_id, src))
        if specs:
            rows.sort(key=functools.cmp_to_key(lambda a, b: _compare(a[0], b[0], specs)))
        if search_after is not None:
            rows = [r for r in rows if _compare(r[0], search_after, specs) > 0]

        hits = []
        for values, doc_id, src in rows[:size]:
            hit = {"_id": doc_id, "_source": copy.deepcopy(src)}
            if specs:
                hit["sort"] = values
            hits.append(hit)
        return {"hits": {"hits": hits}}

    async def count(self, *, index: str, query=None, **kwargs):
        self.calls.append(("count", {"index": index, "query": query}))
        n = sum(1 for doc_id, src in self.indices[index].items() if _matches(src, doc_id, query))
        return {"count": n}

    async def index(self, *, index: str, id: str, document: dict, **kwargs):
        self.calls.append(("index", {"index": index, "id": id}))
        existed = id in self.indices[index]
        self.indices[index][id] = copy.deepcopy(document)
        return {"_id": id, "result": "updated" if existed else "created"}

    async def create(self, *, index: str, id: str, document: dict, **kwargs):
        self.calls.append(("create", {"index": index, "id": id}))
        if id in self.indices[index]:
            return {"status": 409, "error": {"type": "version_conflict_engine_exception"}}
        self.indices[index][id] = copy.deepcopy(document)
        return {"_id": id, "result": "created"}

    async def delete(self, *, index: str, id: str, **kwargs):
        self.calls.append(("delete", {"index": index, "id": id}))
        if self.indices[index].pop(id, None) is None:
            return {"_id": id, "result": "not_found"}
        return {"_id": id, "result": "deleted"}

    async def update(self, *, index: str, id: str, script=None, doc=None, **kwargs):
        self.calls.append(("update", {"index": index, "id": id, "script": script, "doc": doc}))
        src = self.indices[index].get(id)
        if src is None:
            raise LookupError(f"document_missing_exception: {index}/{id}")
        if script is not None:
            field = script["params"]["field"]
            src[field] = max(0, (src.get(field) or 0) + script["params"]["delta"])
        if doc is not None:
            src.update(copy.deepcopy(doc))
        return {"_id": id, "result": "updated"}

    async def bulk(self, *, operations: list[dict], **kwargs):
        self.calls.append(("bulk", {"count": len(operations) // 2}))
        items = []
        for action, document in zip(operations[::2], operations[1::2]):
            meta = action["index"]
            self.indices[meta["_index"]][meta["_id"]] = copy.deepcopy(document)
            items.append({"index": {"_id": meta["_id"], "status": 201}})
        return {"errors": False, "items": items}

    async def close(self) -> None:
        pass


@pytest.fixture
def memory_es() -> MemoryEs:
    return MemoryEs()
