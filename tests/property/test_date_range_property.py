from __future__ import annotations

from datetime import date, datetime, time, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from expense_api.errors import ValidationError
from expense_api.query import date_range_for

MOMENTS = st.datetimes(min_value=datetime(2001, 1, 1), max_value=datetime(2099, 12, 31))
DAYS = st.dates(min_value=date(2001, 1, 1), max_value=date(2099, 12, 31))


@given(now=MOMENTS)
def test_today_contains_now_and_spans_one_day(now: datetime) -> None:
    rng = date_range_for("today", now)
    assert rng is not None and rng.end is not None
    assert rng.contains(now)
    assert rng.start.time() == time.min
    assert rng.end - rng.start == timedelta(days=1) - timedelta(milliseconds=1)


@given(now=MOMENTS)
def test_yesterday_ends_just_before_today(now: datetime) -> None:
    yesterday = date_range_for("yesterday", now)
    today = date_range_for("today", now)
    assert yesterday.end + timedelta(milliseconds=1) == today.start
    assert not yesterday.contains(now)


@given(now=MOMENTS)
def test_relative_ranges_are_nested(now: datetime) -> None:
    week = date_range_for("past_week", now)
    month = date_range_for("past_month", now)
    quarter = date_range_for("last_3_months", now)
    assert quarter.start <= month.start <= week.start <= now
    assert week.end is None and month.end is None and quarter.end is None


@given(first=DAYS, second=DAYS)
def test_custom_range_accepts_ordered_days_only(first: date, second: date) -> None:
    start, end = first.isoformat(), second.isoformat()
    if first <= second:
        rng = date_range_for("custom", datetime(2024, 1, 1), start, end)
        assert rng.start.date() == first
        assert rng.end.date() == second
    else:
        with pytest.raises(ValidationError, match="start must precede end"):
            date_range_for("custom", datetime(2024, 1, 1), start, end)
