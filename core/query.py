"""
core/query.py -- Pagination, sorting and search for listing queries.

Two steps, deliberately separate:

  build_options()  Normalizes loosely-typed request input (numeric strings,
                   junk, None) into a PageOptions value. It never rejects:
                   anything unusable falls back to a default.

  paginate()       Runs the listing query with SQLAlchemy Core against one
                   table and returns a Page envelope.

Security:
  Column names in ORDER BY and in the search filter come only from
  caller-declared allow-lists (sortable_columns / searchable_columns), never
  from request input. The search term itself is always a bound parameter, and
  LIKE wildcards inside it are escaped (autoescape=True) so "%" or "_" typed
  by a user match literally.

Layer rule: core/ is the kernel. No imports from api/, auth/, or cache/.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Table, func, or_, select
from sqlalchemy.engine import Engine, Row

logger = logging.getLogger("accessdesk.query")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_ORDER = "DESC"
DEFAULT_SORT = "created_at"

# Ceiling for page and limit. (2**31 - 1) * 2**31 stays inside a signed
# 64-bit OFFSET, the widest integer SQLite and PostgreSQL bind.
MAX_PAGE_NUMBER = 2**31 - 1


@dataclass(frozen=True)
class PageOptions:
    """Validated listing options. Construct through build_options()."""

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    sort: str = DEFAULT_SORT
    order: str = DEFAULT_ORDER  # "ASC" | "DESC"
    search: str | None = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class Page:
    data: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0
    current_page: int = DEFAULT_PAGE
    total_pages: int = 0
    per_page: int = DEFAULT_LIMIT

    def to_dict(self) -> dict[str, Any]:
        """Pagination envelope in the wire format consumed by listing clients."""
        return {
            "data": self.data,
            "total": self.total,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "perPage": self.per_page,
        }


# ---------------------------------------------------------------------------
# Option sanitization
# ---------------------------------------------------------------------------


def _positive_int(value: Any, default: int) -> int:
    """Coerce value to an int >= 1, or return default.

    Accepts ints, integral floats and numeric strings ("3", " 3 ", "3.0",
    "1e3"). Booleans are rejected even though bool is an int subclass.
    Finite values above MAX_PAGE_NUMBER are clamped to it.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        number = value
    else:
        try:
            as_float = float(str(value).strip())
        except ValueError:
            return default
        if not math.isfinite(as_float):
            return default
        number = int(as_float)
    if number < 1:
        return default
    return min(number, MAX_PAGE_NUMBER)


def normalize_order(order: Any) -> str:
    """Case-insensitive ASC/DESC. Anything else, including None, is DESC."""
    if isinstance(order, str) and order.strip().upper() == "ASC":
        return "ASC"
    return "DESC"


def build_options(
    page: Any = None,
    limit: Any = None,
    sort: Any = None,
    order: Any = None,
    search: Any = None,
    *,
    sortable_columns: Sequence[str] = (),
    default_sort: str = DEFAULT_SORT,
    max_limit: int | None = None,
) -> PageOptions:
    """Normalize raw listing parameters into PageOptions.

    sort is honoured only when it appears in sortable_columns; otherwise the
    default sort column is used. max_limit, when given, caps the page size.
    """
    clean_limit = _positive_int(limit, DEFAULT_LIMIT)
    if max_limit is not None and clean_limit > max_limit:
        clean_limit = max_limit

    clean_sort = sort if isinstance(sort, str) and sort in sortable_columns else default_sort

    clean_search: str | None = None
    if search is not None:
        clean_search = str(search).strip()

    return PageOptions(
        page=_positive_int(page, DEFAULT_PAGE),
        limit=clean_limit,
        sort=clean_sort,
        order=normalize_order(order),
        search=clean_search,
    )


# ---------------------------------------------------------------------------
# Query execution
# ---------------------------------------------------------------------------


def _row_to_dict(row: Row) -> dict[str, Any]:
    return dict(row._mapping)


def paginate(
    engine: Engine,
    table: Table,
    options: PageOptions,
    searchable_columns: Sequence[str] = (),
    base_filter: Any = None,
    row_mapper: Callable[[Row], dict[str, Any]] = _row_to_dict,
) -> Page:
    """Fetch one page of rows from table plus the total matching count.

    base_filter is an optional SQLAlchemy expression ANDed into both the page
    query and the count (e.g. excluding soft-deleted rows). The search filter
    is an OR of substring matches across searchable_columns and is applied
    only when both the term and the column list are non-empty.

    Raises ValueError if an allow-listed column does not exist on the table --
    that is a programming error in the caller, not bad user input.
    """
    for name in (*searchable_columns, options.sort):
        if name not in table.c:
            raise ValueError(f"Unknown column {name!r} for table {table.name!r}")

    conditions = []
    if base_filter is not None:
        conditions.append(base_filter)
    if options.search and searchable_columns:
        conditions.append(or_(*(table.c[name].contains(options.search, autoescape=True) for name in searchable_columns)))

    sort_column = table.c[options.sort]
    ordering = sort_column.asc() if options.order == "ASC" else sort_column.desc()
    # Primary key as tie-breaker keeps page boundaries stable when sort values repeat.
    tie_breakers = [col.asc() if options.order == "ASC" else col.desc() for col in table.primary_key.columns]

    page_stmt = select(table).where(*conditions).order_by(ordering, *tie_breakers).offset(options.offset).limit(options.limit)
    count_stmt = select(func.count()).select_from(table).where(*conditions)

    with engine.connect() as conn:
        total = conn.execute(count_stmt).scalar() or 0
        # Past the last page: nothing to fetch.
        rows = conn.execute(page_stmt).fetchall() if options.offset < total else []

    logger.debug(
        "paginate %s page=%d limit=%d sort=%s %s search=%r -> %d/%d",
        table.name,
        options.page,
        options.limit,
        options.sort,
        options.order,
        options.search,
        len(rows),
        total,
    )
    return Page(
        data=[row_mapper(r) for r in rows],
        total=total,
        current_page=options.page,
        total_pages=math.ceil(total / options.limit),
        per_page=options.limit,
    )
