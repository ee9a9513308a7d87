"""Pagination, sorting and page-info helpers shared by the list operations."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, List, Optional, Sequence, Tuple, TypeVar

from .models import PageInfo

T = TypeVar("T")

VALID_SORT_KEYS: Tuple[str, ...] = ("id", "date", "order", "description", "amount")
VALID_ORDERS: Tuple[str, ...] = ("asc", "desc")


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    limit: int = 10
    sort: str = "date"
    order: str = "desc"

    def normalized(self) -> "Pagination":
        """Clamp page/limit to at least 1 and fall back on unknown sort/order."""

        return Pagination(
            page=max(1, _coerce_int(self.page, 1)),
            limit=max(1, _coerce_int(self.limit, 10)),
            sort=self.sort if self.sort in VALID_SORT_KEYS else "date",
            order=self.order if self.order in VALID_ORDERS else "desc",
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


DEFAULT_PAGINATION = Pagination()
OLDEST_FIRST = Pagination(order="asc")


def resolve(pagination: Optional[Pagination], default: Pagination = DEFAULT_PAGINATION) -> Pagination:
    return (pagination or default).normalized()


def _coerce_int(value: Any, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def sort_value(value: Any, key: str) -> Any:
    if key == "date":
        return parse_day(value)
    if key == "amount":
        return float(value or 0.0)
    return "" if value is None else str(value)


def parse_day(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def sort_rows(
    rows: Sequence[T],
    pagination: Pagination,
    getter: Callable[[T, str], Any],
) -> List[T]:
    """Sort *rows* on the pagination key, keeping input order between ties.

    ``sorted`` is stable for ``reverse=True`` too, so equal keys keep the
    repository order in both directions.
    """

    return sorted(
        rows,
        key=lambda row: sort_value(getter(row, pagination.sort), pagination.sort),
        reverse=pagination.order == "desc",
    )


def build_page_info(total_count: int, pagination: Pagination) -> PageInfo:
    total_pages = math.ceil(total_count / pagination.limit)
    current = pagination.page
    has_next = current < total_pages
    has_previous = current > 1
    return PageInfo(
        total_count=total_count,
        total_pages=total_pages,
        current_page=current,
        has_next_page=has_next,
        has_previous_page=has_previous,
        next_page=current + 1 if has_next else None,
        previous_page=current - 1 if has_previous else None,
    )


def paginate(rows: Sequence[T], pagination: Pagination) -> Tuple[List[T], PageInfo]:
    start = pagination.offset
    page_rows = list(rows[start : start + pagination.limit])
    return page_rows, build_page_info(len(rows), pagination)
