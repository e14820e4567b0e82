"""
orgsync.engine.listing — Search / Filter / Sort / Paginate
===========================================================

Every directory screen (organizations, members, posts, quizzes) runs the
same pipeline over a base ``SELECT``:

1. case-insensitive substring search across a fixed set of columns,
2. equality filters (blank and ``"all"`` mean "no filter"),
3. sort on a whitelisted field, falling back to the default,
4. page of ``page_size`` rows, resetting to page 1 when the requested
   page lies past the end of the filtered result.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session

from orgsync.constants import DEPARTMENTS, YEAR_LEVELS

DEFAULT_PAGE_SIZE = 10
_NO_FILTER = ("", "all", None)


@dataclass(slots=True)
class ListQuery:
    search: str = ""
    filters: dict[str, Any] = field(default_factory=dict)
    sort_field: str | None = None
    sort_dir: str = "asc"
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


@dataclass(slots=True)
class Page:
    items: list[Any]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.page_size)) if self.page_size else 1

    def to_dict(self, serialize=None) -> dict:
        items = [serialize(i) for i in self.items] if serialize else list(self.items)
        return {
            "items": items,
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
        }


# ---------------------------------------------------------------------------
# Filter normalisation
# ---------------------------------------------------------------------------
def normalize_year_filter(value: Any) -> int | None:
    """Return the year level as an int when *value* is ``'1'``–``'5'``.

    Anything else (``"all"``, ``"6"``, ``"abc"``, ``None``) means no filter.
    """
    if value is None:
        return None
    text = str(value).strip()
    if text not in YEAR_LEVELS:
        return None
    return int(text)


def normalize_department(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip().upper()
    return text if text in DEPARTMENTS else None


def clamp_page(page: int, total: int, page_size: int) -> int:
    """Reset to page 1 when *page* starts past the last filtered row."""
    if page < 1:
        return 1
    if page > 1 and (page - 1) * page_size >= total:
        return 1
    return page


# ---------------------------------------------------------------------------
# Statement builders
# ---------------------------------------------------------------------------
def like_pattern(term: str) -> str:
    """``%term%`` with LIKE wildcards in *term* escaped by ``\\``."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_clause(term: str | None, columns: Sequence[Any]):
    """Case-insensitive substring match of *term* on any of *columns*.

    Returns ``None`` when *term* is blank so callers can skip the filter.
    """
    term = (term or "").strip().lower()
    if not term or not columns:
        return None
    pattern = like_pattern(term)
    return or_(*(func.lower(col).like(pattern, escape="\\") for col in columns))


def apply_listing(
    stmt: Select,
    model: type,
    query: ListQuery,
    *,
    search_columns: Sequence[Any] = (),
    sortable: Iterable[str] = (),
    default_sort: str | None = None,
) -> tuple[Select, Select]:
    """Apply search, filters and sorting to *stmt*.

    Returns ``(data_stmt, count_stmt)``; *data_stmt* is not yet paged.
    """
    clause = search_clause(query.search, search_columns)
    if clause is not None:
        stmt = stmt.where(clause)

    for key, value in query.filters.items():
        if value in _NO_FILTER:
            continue
        column = getattr(model, key, None)
        if column is None:
            continue
        stmt = stmt.where(column == value)

    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())

    allowed = set(sortable)
    sort_field = query.sort_field if query.sort_field in allowed else default_sort
    if sort_field:
        column = getattr(model, sort_field)
        stmt = stmt.order_by(column.desc() if query.sort_dir == "desc" else column.asc())

    return stmt, count_stmt


def run_listing(
    session: Session,
    stmt: Select,
    model: type,
    query: ListQuery,
    **kwargs: Any,
) -> Page:
    """Execute :func:`apply_listing` and fetch one page of scalars."""
    data_stmt, count_stmt = apply_listing(stmt, model, query, **kwargs)
    total = session.scalar(count_stmt) or 0
    page = clamp_page(query.page, total, query.page_size)
    rows = session.scalars(
        data_stmt.offset((page - 1) * query.page_size).limit(query.page_size)
    ).all()
    return Page(items=list(rows), total=total, page=page, page_size=query.page_size)
