"""
Search and pagination for the resource list pages.

A raw search string becomes one of three filters:

    NoFilter            empty search, every row is eligible
    SingleTermFilter    one token, OR across the searchable columns
    TwoTermFilter       two or more tokens, first AND last name

The filter is applied once to a base query, and both the row count and the
page of items are derived from that single filtered query, so the page count
always describes what is actually browsable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, List, Optional, Sequence, TypeVar, Union

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query

from ellarises.config.improved_logging_config import LogCategory, get_smart_logger

logger = get_smart_logger(__name__, LogCategory.DATABASE)

T = TypeVar('T')


def tokenize(raw: Optional[str]) -> List[str]:
    return (raw or '').split()


@dataclass(frozen=True)
class SearchQuery:
    raw: str = ''
    page: int = 1

    def __post_init__(self):
        if self.page < 1:
            raise ValueError("page must be >= 1")


@dataclass(frozen=True)
class SearchFields:
    """Columns a resource exposes to the search box.

    `first_name`/`last_name` enable the two-token form. Resources without a
    person name (events, surveys) search the whole text as a single term.
    """
    columns: Sequence[Any]
    first_name: Any = None
    last_name: Any = None

    @property
    def supports_name_pair(self) -> bool:
        return self.first_name is not None and self.last_name is not None


class NoFilter:
    def apply(self, query: Query) -> Query:
        return query

    def __repr__(self):
        return "NoFilter()"


@dataclass(frozen=True, eq=False)
class SingleTermFilter:
    columns: Sequence[Any]
    term: str

    def clause(self):
        return or_(*(column.icontains(self.term, autoescape=True) for column in self.columns))

    def apply(self, query: Query) -> Query:
        return query.filter(self.clause())


@dataclass(frozen=True, eq=False)
class TwoTermFilter:
    first_column: Any
    last_column: Any
    first_term: str
    last_term: str

    def clause(self):
        return and_(
            self.first_column.icontains(self.first_term, autoescape=True),
            self.last_column.icontains(self.last_term, autoescape=True),
        )

    def apply(self, query: Query) -> Query:
        return query.filter(self.clause())


SearchFilter = Union[NoFilter, SingleTermFilter, TwoTermFilter]


def build_filter(raw: Optional[str], fields: SearchFields) -> SearchFilter:
    tokens = tokenize(raw)
    if not tokens:
        return NoFilter()
    if len(tokens) == 1 or not fields.supports_name_pair:
        return SingleTermFilter(tuple(fields.columns), ' '.join(tokens))
    # Tokens past the second are ignored
    return TwoTermFilter(fields.first_name, fields.last_name, tokens[0], tokens[1])


@dataclass
class PagedResult(Generic[T]):
    items: List[T]
    total_pages: int
    total_count: int
    page: int
    page_size: int
    search_term: str = ''

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def total_pages_for(total_count: int, page_size: int) -> int:
    return math.ceil(total_count / page_size) if total_count else 0


def paginate(query: Query, search: SearchQuery, fields: SearchFields, page_size: int) -> PagedResult:
    """Run a search against `query` and return one page of rows.

    `query` carries the joins, projection and ordering for display. A page
    past the end yields no items and the true page count.
    """
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    search_filter = build_filter(search.raw, fields)
    filtered = search_filter.apply(query)

    total_count = filtered.order_by(None).count()
    offset = (search.page - 1) * page_size
    # Pages past the end never reach the database, however large the number
    items = filtered.limit(page_size).offset(offset).all() if offset < total_count else []
    logger.database_query("search page", total_count)

    return PagedResult(
        items=items,
        total_pages=total_pages_for(total_count, page_size),
        total_count=total_count,
        page=search.page,
        page_size=page_size,
        search_term=search.raw,
    )
