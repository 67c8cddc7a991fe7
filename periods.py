"""Calendar bucketing for plan periods.

A record belongs to exactly one bucket of its plan's period and is stored
under the bucket's start date. Weeks follow ISO 8601: they start on
Monday and are identified by ISO year and ISO week number.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Union

from errors import InvalidPeriod
from models import PeriodType

PeriodLike = Union[PeriodType, str]

# Coarse to fine; a sub-plan may not be coarser than its parent.
PERIOD_RANK: dict[PeriodType, int] = {
    PeriodType.year: 4,
    PeriodType.quarter: 3,
    PeriodType.month: 2,
    PeriodType.week: 1,
}

# Fixed divisors for AVERAGE allocation. Approximate: a year is
# 52 weeks and a month 4 weeks regardless of the calendar.
SUB_PERIOD_COUNTS: dict[tuple[PeriodType, PeriodType], int] = {
    (PeriodType.year, PeriodType.quarter): 4,
    (PeriodType.year, PeriodType.month): 12,
    (PeriodType.year, PeriodType.week): 52,
    (PeriodType.quarter, PeriodType.month): 3,
    (PeriodType.quarter, PeriodType.week): 13,
    (PeriodType.month, PeriodType.week): 4,
}


@dataclass(frozen=True)
class Bucket:
    period: PeriodType
    start: date
    end: date

    def __contains__(self, value: date) -> bool:
        return self.start <= value <= self.end


def parse_period(period: PeriodLike) -> Optional[PeriodType]:
    if isinstance(period, PeriodType):
        return period
    try:
        return PeriodType(str(period).upper())
    except ValueError:
        return None


def require_period(period: PeriodLike) -> PeriodType:
    parsed = parse_period(period)
    if parsed is None:
        raise InvalidPeriod(f"Unknown period type {period!r}", entity="period")
    return parsed


def _quarter(value: date) -> int:
    return (value.month - 1) // 3


def same_bucket(period: PeriodLike, a: date, b: date) -> bool:
    parsed = parse_period(period)
    if parsed == PeriodType.year:
        return a.year == b.year
    if parsed == PeriodType.quarter:
        return a.year == b.year and _quarter(a) == _quarter(b)
    if parsed == PeriodType.month:
        return a.year == b.year and a.month == b.month
    if parsed == PeriodType.week:
        return a.isocalendar()[:2] == b.isocalendar()[:2]
    return False


def bucket_start(period: PeriodLike, value: date) -> date:
    parsed = require_period(period)
    if parsed == PeriodType.year:
        return date(value.year, 1, 1)
    if parsed == PeriodType.quarter:
        return date(value.year, _quarter(value) * 3 + 1, 1)
    if parsed == PeriodType.month:
        return value.replace(day=1)
    return value - timedelta(days=value.weekday())


def bucket_end(period: PeriodLike, value: date) -> date:
    parsed = require_period(period)
    start = bucket_start(parsed, value)
    if parsed == PeriodType.year:
        return date(start.year, 12, 31)
    if parsed == PeriodType.week:
        return start + timedelta(days=6)
    months = 3 if parsed == PeriodType.quarter else 1
    total = start.month - 1 + months
    next_start = date(start.year + total // 12, total % 12 + 1, 1)
    return next_start - date.resolution


def bucket_for(period: PeriodLike, value: date) -> Bucket:
    parsed = require_period(period)
    return Bucket(
        period=parsed,
        start=bucket_start(parsed, value),
        end=bucket_end(parsed, value),
    )


def sub_period_count(parent_period: PeriodLike, sub_period: PeriodLike) -> int:
    key = (parse_period(parent_period), parse_period(sub_period))
    return SUB_PERIOD_COUNTS.get(key, 1)


def is_finer_or_equal(sub_period: PeriodLike, parent_period: PeriodLike) -> bool:
    return (
        PERIOD_RANK[require_period(sub_period)]
        <= PERIOD_RANK[require_period(parent_period)]
    )
