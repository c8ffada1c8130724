"""
Query building for restaurant listing and search.

Rules:
- page is floored at 1, limit is floored at 1 and capped at MAX_LIMIT
- search field must be in SEARCH_FIELDS; anything else is rejected
  before a filter is built
- search matches a case-insensitive substring of the chosen field
- searchScore is the primary sort key when score ranking is enabled
"""
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

from restaurant_service.config import config

logger = logging.getLogger(__name__)

MAX_LIMIT = 100
LIST_DEFAULT_LIMIT = 50
SEARCH_DEFAULT_LIMIT = 10

SEARCH_FIELDS = ("name", "cuisine", "address")
SORT_FIELDS = SEARCH_FIELDS + ("searchScore", "createdAt")
SORT_ORDERS = {"asc": ASCENDING, "desc": DESCENDING}


class SearchQueryError(Exception):
    """Raised when search parameters are rejected."""
    pass


@dataclass
class Paging:
    """Normalized page request."""
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class SearchQuery:
    """Validated search parameters, ready for the store."""
    filter: Dict[str, Any]
    sort: List[Tuple[str, int]]
    paging: Paging


def normalize_paging(page: Optional[int], limit: Optional[int], default_limit: int) -> Paging:
    """Clamp page/limit into range instead of rejecting them."""
    page = page if page and page > 0 else 1
    if limit is None:
        limit = default_limit
    limit = max(1, min(limit, MAX_LIMIT))
    return Paging(page=page, limit=limit)


def build_pagination(paging: Paging, total: int) -> Dict[str, Any]:
    """Pagination envelope returned next to every page of results."""
    total_pages = math.ceil(total / paging.limit) if total else 0
    return {
        "currentPage": paging.page,
        "totalPages": total_pages,
        "totalResults": total,
        "resultsPerPage": paging.limit,
        "hasNextPage": paging.page < total_pages,
        "hasPrevPage": paging.page > 1,
    }


def list_sort() -> Optional[List[Tuple[str, int]]]:
    """Sort for the unfiltered list: best score first, or store order."""
    if config.LIST_SORT_BY_SCORE:
        return [("searchScore", DESCENDING)]
    return None


def build_search_filter(field: Optional[str], query: Optional[str]) -> Dict[str, Any]:
    """
    Substring match on one allow-listed field.
    Matches everything when either part is missing.
    """
    if field and field not in SEARCH_FIELDS:
        raise SearchQueryError(
            f"Invalid search field: {field}. Must be one of: {', '.join(SEARCH_FIELDS)}"
        )
    if not field or not query:
        return {}
    return {field: {"$regex": re.escape(query), "$options": "i"}}


def build_search_sort(sort_by: str, sort_order: str) -> List[Tuple[str, int]]:
    if sort_by not in SORT_FIELDS:
        raise SearchQueryError(
            f"Invalid sort field: {sort_by}. Must be one of: {', '.join(SORT_FIELDS)}"
        )
    direction = SORT_ORDERS.get(sort_order.lower())
    if direction is None:
        raise SearchQueryError(f"Invalid sort order: {sort_order}. Must be 'asc' or 'desc'")

    if sort_by == "searchScore" or not config.SEARCH_SCORE_PRIMARY:
        return [(sort_by, direction)]
    return [("searchScore", DESCENDING), (sort_by, direction)]


def build_search(
    field: Optional[str],
    query: Optional[str],
    page: Optional[int],
    limit: Optional[int],
    sort_by: str = "name",
    sort_order: str = "asc",
) -> SearchQuery:
    """
    Main entry point: validate search params and build filter, sort, paging.
    Raises SearchQueryError for rejected input.
    """
    search = SearchQuery(
        filter=build_search_filter(field, query),
        sort=build_search_sort(sort_by, sort_order),
        paging=normalize_paging(page, limit, SEARCH_DEFAULT_LIMIT),
    )
    logger.info(f"Search built: field={field}, sort={search.sort}, "
                f"page={search.paging.page}, limit={search.paging.limit}")
    return search
