"""
Value types for scroll exports and the response decoder.

A response is either a well-formed batch (possibly with zero hits) or
malformed. An empty hits list is end-of-data; a missing or non-list
hits container is malformed and gets retried upstream.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from scroll_exporter.config import QueryConfig
from scroll_exporter.utils.exceptions import ConfigError, MalformedResponseError


@dataclass(frozen=True)
class QuerySpec:
    """Immutable description of the query being exported."""
    index: str
    page_size: int = 10
    fields: Tuple[str, ...] = ("title",)
    sort: Tuple[str, ...] = ("_doc",)
    scroll_ttl: str = "5m"
    query: Optional[Dict[str, Any]] = field(default=None, compare=False)

    def __post_init__(self):
        if not self.index:
            raise ConfigError("index must not be empty")
        if not isinstance(self.page_size, int) or self.page_size < 1:
            raise ConfigError(f"page_size must be a positive integer, got {self.page_size!r}")
        if not self.fields:
            raise ConfigError("at least one projected field is required")
        # Accept lists from callers but keep the stored value immutable
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "sort", tuple(self.sort))

    @classmethod
    def from_config(cls, query_config: QueryConfig) -> "QuerySpec":
        """Build a QuerySpec from the query section of Config."""
        return cls(
            index=query_config.index,
            page_size=query_config.page_size,
            fields=tuple(query_config.fields),
            sort=tuple(query_config.sort),
            scroll_ttl=query_config.scroll_ttl,
            query=query_config.query,
        )

    def search_body(self) -> Dict[str, Any]:
        """Body of the initial scroll search request."""
        body: Dict[str, Any] = {
            "size": self.page_size,
            "_source": list(self.fields),
            "sort": list(self.sort),
        }
        if self.query is not None:
            body["query"] = self.query
        return body


@dataclass(frozen=True)
class Batch:
    """One page of hits plus the scroll ID that came with it."""
    hits: List[Dict[str, Any]]
    scroll_id: Optional[str] = None
    total: Optional[int] = None

    @property
    def count(self) -> int:
        return len(self.hits)


def is_valid_scroll_id(scroll_id: Any) -> bool:
    """A usable scroll ID is a non-empty string other than the literal 'null'."""
    return isinstance(scroll_id, str) and scroll_id.strip() not in ("", "null")


def _parse_total(hits_container: Dict[str, Any]) -> Optional[int]:
    total = hits_container.get("total")
    # ES 7+ reports {"value": n, "relation": "eq"}; ES 6 reports a bare int
    if isinstance(total, dict):
        total = total.get("value")
    if isinstance(total, int) and not isinstance(total, bool):
        return total
    return None


def decode_batch(body: str) -> Batch:
    """
    Decode a search/scroll response body into a Batch.

    Args:
        body: Raw response text

    Returns:
        Batch with hits in arrival order. scroll_id is passed through
        unvalidated; callers decide whether it is usable.

    Raises:
        MalformedResponseError: If the body is not a JSON object with a
            hits.hits list
    """
    try:
        data = json.loads(body)
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(f"Response is not valid JSON: {e}", response_body=body) from e

    if not isinstance(data, dict):
        raise MalformedResponseError("Response is not a JSON object", response_body=body)

    hits_container = data.get("hits")
    if not isinstance(hits_container, dict):
        raise MalformedResponseError("Response has no hits container", response_body=body)

    hits = hits_container.get("hits")
    if not isinstance(hits, list):
        raise MalformedResponseError("Response has no hits.hits list", response_body=body)

    return Batch(
        hits=hits,
        scroll_id=data.get("_scroll_id"),
        total=_parse_total(hits_container),
    )
