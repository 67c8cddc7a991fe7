from datetime import date

import pytest

from errors import InvalidPeriod
from models import PeriodType
from periods import (
    bucket_end,
    bucket_for,
    bucket_start,
    is_finer_or_equal,
    same_bucket,
    sub_period_count,
)


def test_same_bucket_year_compares_calendar_year() -> None:
    assert same_bucket(PeriodType.year, date(2025, 1, 1), date(2025, 12, 31))
    assert not same_bucket(PeriodType.year, date(2024, 12, 31), date(2025, 1, 1))


def test_same_bucket_quarter_uses_three_month_blocks() -> None:
    assert same_bucket(PeriodType.quarter, date(2025, 1, 1), date(2025, 3, 31))
    assert not same_bucket(PeriodType.quarter, date(2025, 3, 31), date(2025, 4, 1))
    assert not same_bucket(PeriodType.quarter, date(2024, 2, 1), date(2025, 2, 1))


def test_same_bucket_month() -> None:
    assert same_bucket(PeriodType.month, date(2025, 2, 1), date(2025, 2, 28))
    assert not same_bucket(PeriodType.month, date(2025, 2, 1), date(2024, 2, 1))


def test_same_bucket_week_follows_iso_weeks_across_new_year() -> None:
    # Monday 2024-12-30 opens ISO week 1 of 2025.
    assert same_bucket(PeriodType.week, date(2024, 12, 30), date(2025, 1, 5))
    assert not same_bucket(PeriodType.week, date(2025, 1, 5), date(2025, 1, 6))


def test_same_bucket_unknown_period_never_matches() -> None:
    assert not same_bucket("DAY", date(2025, 1, 1), date(2025, 1, 1))


def test_same_bucket_accepts_string_periods() -> None:
    assert same_bucket("month", date(2025, 5, 1), date(2025, 5, 20))


def test_bucket_start_normalizes_each_period() -> None:
    value = date(2025, 5, 17)
    assert bucket_start(PeriodType.year, value) == date(2025, 1, 1)
    assert bucket_start(PeriodType.quarter, value) == date(2025, 4, 1)
    assert bucket_start(PeriodType.month, value) == date(2025, 5, 1)
    assert bucket_start(PeriodType.week, value) == date(2025, 5, 12)


def test_bucket_start_rejects_unknown_period() -> None:
    with pytest.raises(InvalidPeriod):
        bucket_start("DAY", date(2025, 1, 1))


def test_bucket_end() -> None:
    assert bucket_end(PeriodType.quarter, date(2025, 11, 5)) == date(2025, 12, 31)
    assert bucket_end(PeriodType.month, date(2024, 2, 10)) == date(2024, 2, 29)
    assert bucket_end(PeriodType.week, date(2025, 1, 1)) == date(2025, 1, 5)
    assert bucket_end(PeriodType.year, date(2025, 6, 1)) == date(2025, 12, 31)


def test_bucket_contains_its_whole_range() -> None:
    bucket = bucket_for(PeriodType.quarter, date(2025, 8, 9))
    assert bucket.start == date(2025, 7, 1)
    assert date(2025, 9, 30) in bucket
    assert date(2025, 10, 1) not in bucket


@pytest.mark.parametrize(
    ("parent", "sub", "expected"),
    [
        (PeriodType.year, PeriodType.quarter, 4),
        (PeriodType.year, PeriodType.month, 12),
        (PeriodType.year, PeriodType.week, 52),
        (PeriodType.quarter, PeriodType.month, 3),
        (PeriodType.quarter, PeriodType.week, 13),
        (PeriodType.month, PeriodType.week, 4),
        (PeriodType.month, PeriodType.month, 1),
        (PeriodType.month, PeriodType.year, 1),
        ("DAY", PeriodType.week, 1),
    ],
)
def test_sub_period_count_table(parent, sub, expected) -> None:
    assert sub_period_count(parent, sub) == expected


def test_is_finer_or_equal() -> None:
    assert is_finer_or_equal(PeriodType.month, PeriodType.year)
    assert is_finer_or_equal(PeriodType.month, PeriodType.month)
    assert not is_finer_or_equal(PeriodType.quarter, PeriodType.month)


def test_week_starting_in_previous_month_belongs_to_that_month() -> None:
    week_start = bucket_start(PeriodType.week, date(2024, 8, 1))
    assert week_start == date(2024, 7, 29)
    assert same_bucket(PeriodType.month, week_start, date(2024, 7, 1))
    assert not same_bucket(PeriodType.month, week_start, date(2024, 8, 1))
