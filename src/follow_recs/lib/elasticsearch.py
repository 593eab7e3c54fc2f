"""Shared Elasticsearch utilities.

Helpers for working with Elasticsearch responses and for building the
small set of query shapes the stores use.
"""

import logging
from typing import Any

from elastic_transport import ObjectApiResponse

logger = logging.getLogger(__name__)


def unwrap_es_response(resp) -> dict:
    """Unwrap an Elasticsearch response, handling both ObjectApiResponse and dict."""
    if isinstance(resp, ObjectApiResponse):
        return resp.body
    elif isinstance(resp, dict):
        return resp
    else:
        logger.error("Unexpected Elasticsearch response type: %s", type(resp))
        raise TypeError(f"Unexpected Elasticsearch response type: {type(resp)}")


def iter_hits(resp) -> list[dict]:
    """Return the ``hits.hits`` list of a search response."""
    data = unwrap_es_response(resp)
    return data.get("hits", {}).get("hits", []) or []


def is_conflict(resp) -> bool:
    """True when a write sent with ``ignore_status=409`` hit a version conflict."""
    data = unwrap_es_response(resp)
    return data.get("status") == 409


def bool_query(
    filters: list[dict[str, Any]] | None = None,
    must_not: list[dict[str, Any]] | None = None,
) -> dict:
    """Build a non-scoring ``bool`` query; ``match_all`` when nothing is given."""
    if not filters and not must_not:
        return {"match_all": {}}
    body: dict[str, Any] = {}
    if filters:
        body["filter"] = filters
    if must_not:
        body["must_not"] = must_not
    return {"bool": body}
