"""URL query string <-> table state.

The engine owns four keys: ``search``, ``sort``, ``page`` and ``limit``.
Every other key in the current query is carried over untouched.
"""
from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit

from .pagination import DEFAULT_PAGE_SIZE, PaginationState
from .state import FilterSet, SortSpec, TableStateSnapshot

SEARCH_KEY = "search"
SORT_KEY = "sort"
PAGE_KEY = "page"
LIMIT_KEY = "limit"
OWNED_KEYS = (SEARCH_KEY, SORT_KEY, PAGE_KEY, LIMIT_KEY)

FILTER_SEPARATOR = ","
PAIR_SEPARATOR = ":"
SAFE_CHARS = ":,"


def serialize(snapshot: TableStateSnapshot, existing: Mapping[str, str] | None = None) -> dict[str, str]:
    """Merge the snapshot over ``existing`` without mutating it."""
    query = {key: value for key, value in (existing or {}).items() if key not in OWNED_KEYS}
    if len(snapshot.filters):
        query[SEARCH_KEY] = format_search(snapshot.filters)
    if snapshot.sort is not None:
        query[SORT_KEY] = format_sort(snapshot.sort)
    query[PAGE_KEY] = str(snapshot.pagination.page_number)
    query[LIMIT_KEY] = str(snapshot.pagination.page_size)
    return query


def deserialize(query: Mapping[str, str], default_page_size: int = DEFAULT_PAGE_SIZE) -> TableStateSnapshot:
    """Rebuild a snapshot from a query map. Malformed parts fall back to defaults."""
    page = _positive_int(query.get(PAGE_KEY), 1)
    limit = _positive_int(query.get(LIMIT_KEY), default_page_size)
    return TableStateSnapshot(
        sort=parse_sort(query.get(SORT_KEY)),
        filters=parse_search(query.get(SEARCH_KEY)),
        pagination=PaginationState(page_index=page - 1, page_size=limit),
    )


def format_sort(sort: SortSpec) -> str:
    return f"{sort.column_id}{PAIR_SEPARATOR}{sort.direction}"


def format_search(filters: FilterSet) -> str:
    return FILTER_SEPARATOR.join(f"{entry.column_id}{PAIR_SEPARATOR}{entry.value}" for entry in filters)


def parse_sort(raw: str | None) -> SortSpec | None:
    if not raw:
        return None
    column_id, separator, direction = raw.rpartition(PAIR_SEPARATOR)
    direction = direction.strip().lower()
    if not separator or not column_id or direction not in {"asc", "desc"}:
        return None
    return SortSpec(column_id=column_id, descending=direction == "desc")


def parse_search(raw: str | None) -> FilterSet:
    if not raw:
        return FilterSet()
    pairs: list[tuple[str, str]] = []
    for chunk in raw.split(FILTER_SEPARATOR):
        column_id, separator, value = chunk.partition(PAIR_SEPARATOR)
        if not separator or not column_id or not value:
            continue
        pairs.append((column_id, value))
    return FilterSet.of(pairs)


def parse_query_string(query_string: str) -> dict[str, str]:
    """Parse a bare query string, a ``?``-prefixed one, or a full URL."""
    if "?" in query_string or "://" in query_string:
        query_string = urlsplit(query_string).query
    return dict(parse_qsl(query_string, keep_blank_values=True))


def encode_query(query: Mapping[str, str]) -> str:
    return urlencode(list(query.items()), safe=SAFE_CHARS)


def _positive_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value >= 1 else default
