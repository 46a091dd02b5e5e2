"""Expense query engine.

Translates the ``GET /expense`` parameters (free-text search, relative or
custom date filters, sort mode and pagination) into a store lookup and a page
of results.  Only the ``custom`` date filter can fail; every other unknown
value silently falls back to its default.

Example::

    >>> from datetime import datetime
    >>> sort_key_for("amount_high")
    SortKey(field='amount', direction=<SortDirection.DESC: 'desc'>)
    >>> date_range_for("today", datetime(2024, 3, 10, 15, 30)).start
    datetime.datetime(2024, 3, 10, 0, 0)
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Final, Protocol

from dateutil.relativedelta import relativedelta

from .errors import ValidationError
from .logging import get_stream_logger

LOG = get_stream_logger(__name__)

DEFAULT_PAGE: Final[int] = 1
DEFAULT_LIMIT: Final[int] = 10
END_OF_DAY: Final[time] = time(23, 59, 59, 999000)
# Largest OFFSET/LIMIT a SQL backend accepts (signed 64-bit).
MAX_WINDOW: Final[int] = 2**63 - 1


class FilterOption(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    PAST_WEEK = "past_week"
    PAST_MONTH = "past_month"
    LAST_3_MONTHS = "last_3_months"
    CUSTOM = "custom"


class SortOption(str, Enum):
    A_Z = "a-z"
    Z_A = "z-a"
    AMOUNT_HIGH = "amount_high"
    AMOUNT_LOW = "amount_low"
    NEWEST_DATE = "newest_date"
    OLDEST_DATE = "oldest_date"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True, slots=True)
class SortKey:
    """Record attribute and direction used to order a result set."""

    field: str
    direction: SortDirection


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive ``created_at`` bounds; ``end`` is ``None`` for open ranges."""

    start: datetime
    end: datetime | None = None

    def contains(self, moment: datetime) -> bool:
        if moment < self.start:
            return False
        return self.end is None or moment <= self.end


@dataclass(frozen=True, slots=True)
class ExpenseCriteria:
    """Store-agnostic predicate: search text AND created-at range, both optional."""

    search: str | None = None
    created: DateRange | None = None


@dataclass(frozen=True, slots=True)
class ExpenseQuery:
    """Raw listing parameters as received from the caller."""

    search: str | None = None
    filter: str | None = None
    start_date: str | date | None = None
    end_date: str | date | None = None
    sort: str | None = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "ExpenseQuery":
        """Build a query from camelCase request parameters.

        ``page`` and ``limit`` are coerced to integers; anything that is not a
        positive integer raises :class:`ValidationError`.
        """

        return cls(
            search=params.get("search") or None,
            filter=params.get("filter") or None,
            start_date=params.get("startDate") or None,
            end_date=params.get("endDate") or None,
            sort=params.get("sort") or None,
            page=_positive_int("page", params.get("page"), DEFAULT_PAGE),
            limit=_positive_int("limit", params.get("limit"), DEFAULT_LIMIT),
        )


@dataclass(frozen=True, slots=True)
class ExpensePage:
    items: Sequence[Any]
    total_elements: int
    total_pages: int
    page: int
    limit: int


class ExpenseStore(Protocol):
    """Read side of the record store needed by :func:`resolve_expense_query`."""

    def find_many(
        self, criteria: ExpenseCriteria, sort: SortKey, skip: int, limit: int
    ) -> Sequence[Any]: ...

    def count(self, criteria: ExpenseCriteria) -> int: ...


def _positive_int(name: str, value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{name} must be a positive integer") from exc
    if number < 1:
        raise ValidationError(f"{name} must be a positive integer")
    if number > MAX_WINDOW:
        raise ValidationError(f"{name} is out of range")
    return number


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, END_OF_DAY)


def parse_date(value: str | date) -> date:
    """Parse an ISO date (a full ISO timestamp is truncated to its date)."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).strip()).date()
    except ValueError as exc:
        raise ValidationError("invalid date format") from exc


def sort_key_for(mode: str | None) -> SortKey:
    """Map a sort mode to its key; unknown or missing modes mean newest first."""

    try:
        option = SortOption(mode)
    except ValueError:
        option = SortOption.NEWEST_DATE
    if option is SortOption.A_Z:
        return SortKey("description", SortDirection.ASC)
    if option is SortOption.Z_A:
        return SortKey("description", SortDirection.DESC)
    if option is SortOption.AMOUNT_HIGH:
        return SortKey("amount", SortDirection.DESC)
    if option is SortOption.AMOUNT_LOW:
        return SortKey("amount", SortDirection.ASC)
    if option is SortOption.OLDEST_DATE:
        return SortKey("created_at", SortDirection.ASC)
    return SortKey("created_at", SortDirection.DESC)


def date_range_for(
    filter_name: str | None,
    now: datetime,
    start: str | date | None = None,
    end: str | date | None = None,
) -> DateRange | None:
    """Compute the ``created_at`` range for a named filter.

    Args:
      filter_name: One of :class:`FilterOption`; anything else yields ``None``.
      now: Reference instant in server-local time.
      start: First day of a ``custom`` range.
      end: Last day of a ``custom`` range.

    Raises:
      ValidationError: For a ``custom`` filter with a missing or unparseable
        date, or a start later than the end.
    """

    try:
        option = FilterOption(filter_name)
    except ValueError:
        return None

    today = now.date()
    if option is FilterOption.TODAY:
        return DateRange(start_of_day(today), end_of_day(today))
    if option is FilterOption.YESTERDAY:
        yesterday = today - timedelta(days=1)
        return DateRange(start_of_day(yesterday), end_of_day(yesterday))
    if option is FilterOption.PAST_WEEK:
        return DateRange(start_of_day(today - timedelta(days=7)))
    if option is FilterOption.PAST_MONTH:
        return DateRange(start_of_day(today - relativedelta(months=1)))
    if option is FilterOption.LAST_3_MONTHS:
        return DateRange(start_of_day(today - relativedelta(months=3)))

    if not start or not end:
        raise ValidationError("date range required")
    lower = start_of_day(parse_date(start))
    upper = end_of_day(parse_date(end))
    if lower > upper:
        raise ValidationError("start must precede end")
    return DateRange(lower, upper)


def build_criteria(query: ExpenseQuery, now: datetime) -> ExpenseCriteria:
    return ExpenseCriteria(
        search=query.search or None,
        created=date_range_for(query.filter, now, query.start_date, query.end_date),
    )


def page_window(page: int, limit: int) -> tuple[int, int]:
    """Return ``(skip, limit)`` for a 1-based page number.

    Raises:
      ValidationError: If the offset does not fit in :data:`MAX_WINDOW`.
    """

    skip = (page - 1) * limit
    if skip > MAX_WINDOW:
        raise ValidationError("page is out of range")
    return skip, limit


def total_pages_for(total_elements: int, limit: int) -> int:
    return math.ceil(total_elements / limit)


def resolve_expense_query(
    store: ExpenseStore,
    query: ExpenseQuery,
    now: datetime | None = None,
) -> ExpensePage:
    """Run a listing query against ``store`` and assemble the page.

    The fetch and the count are two independent store calls; under concurrent
    writes ``total_elements`` may not match the fetched window exactly.
    """

    if not (1 <= query.page <= MAX_WINDOW and 1 <= query.limit <= MAX_WINDOW):
        raise ValidationError("page and limit must be positive integers within range")
    criteria = build_criteria(query, now or datetime.now())
    sort = sort_key_for(query.sort)
    skip, limit = page_window(query.page, query.limit)
    LOG.debug("Expense query criteria=%s sort=%s skip=%d limit=%d", criteria, sort, skip, limit)

    items = store.find_many(criteria, sort, skip, limit)
    total = store.count(criteria)
    return ExpensePage(
        items=list(items),
        total_elements=total,
        total_pages=total_pages_for(total, limit),
        page=query.page,
        limit=limit,
    )


__all__ = [
    "DateRange",
    "ExpenseCriteria",
    "ExpensePage",
    "ExpenseQuery",
    "ExpenseStore",
    "MAX_WINDOW",
    "FilterOption",
    "SortDirection",
    "SortKey",
    "SortOption",
    "build_criteria",
    "date_range_for",
    "end_of_day",
    "page_window",
    "parse_date",
    "resolve_expense_query",
    "sort_key_for",
    "start_of_day",
    "total_pages_for",
]
