"""
Period Bucketizer

Groups deals into a trailing sequence of time buckets ending at "now" and
sums deal value and count per bucket.

Bucket layout per granularity:

    weekly     8 rolling 7-day windows anchored at now    "Week 1".."Week 8"
    monthly    6 calendar months                          "Jan", "Feb", ...
    quarterly  4 calendar quarters                        "Q1 2024", ...
    yearly     5 calendar years                           "2024", ...

Weekly windows are rolling; the other granularities are calendar-aligned
and run from 00:00 on the first day to the last instant of the last day.
Buckets are always ordered oldest first. Both ends of every bucket are
inclusive and a deal is added to every bucket that contains it.
"""

import calendar
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable, List, Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_analytics.analytics import store
from crm_analytics.analytics.errors import InvalidArgument
from crm_analytics.analytics.metrics import round_currency
from crm_analytics.analytics.schemas import PeriodBucket
from crm_analytics.analytics.timeutils import (
    TimeWindow,
    end_of_day,
    end_of_month,
    shift_months,
)
from crm_analytics.database.models import Deal

logger = structlog.get_logger(__name__)


class Granularity(str, Enum):
    """Sales report period granularity"""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


BUCKET_COUNTS = {
    Granularity.WEEKLY: 8,
    Granularity.MONTHLY: 6,
    Granularity.QUARTERLY: 4,
    Granularity.YEARLY: 5,
}


def parse_granularity(value: Any) -> Granularity:
    """
    Validate a caller-supplied granularity.

    Raises:
        InvalidArgument: ``value`` is not one of the four granularities
    """
    if isinstance(value, Granularity):
        return value
    try:
        return Granularity(value)
    except ValueError:
        allowed = ", ".join(g.value for g in Granularity)
        raise InvalidArgument(f"Unknown period '{value}', expected one of: {allowed}") from None


def _weekly_windows(now: datetime, count: int) -> List[Tuple[str, TimeWindow]]:
    windows = []
    for i in range(count - 1, -1, -1):
        start = now - timedelta(days=i * 7 + 7)
        end = now - timedelta(days=i * 7)
        windows.append((f"Week {count - i}", TimeWindow(start, end)))
    return windows


def _monthly_windows(now: datetime, count: int) -> List[Tuple[str, TimeWindow]]:
    windows = []
    for i in range(count - 1, -1, -1):
        start = shift_months(now, -i)
        windows.append((calendar.month_abbr[start.month], TimeWindow(start, end_of_month(start))))
    return windows


def _quarterly_windows(now: datetime, count: int) -> List[Tuple[str, TimeWindow]]:
    windows = []
    current = now.year * 4 + (now.month - 1) // 3
    for i in range(count - 1, -1, -1):
        year, quarter_index = divmod(current - i, 4)
        start = datetime(year, quarter_index * 3 + 1, 1)
        end = end_of_month(shift_months(start, 2))
        windows.append((f"Q{quarter_index + 1} {year}", TimeWindow(start, end)))
    return windows


def _yearly_windows(now: datetime, count: int) -> List[Tuple[str, TimeWindow]]:
    windows = []
    for i in range(count - 1, -1, -1):
        year = now.year - i
        start = datetime(year, 1, 1)
        windows.append((str(year), TimeWindow(start, end_of_day(datetime(year, 12, 31)))))
    return windows


_WINDOW_BUILDERS = {
    Granularity.WEEKLY: _weekly_windows,
    Granularity.MONTHLY: _monthly_windows,
    Granularity.QUARTERLY: _quarterly_windows,
    Granularity.YEARLY: _yearly_windows,
}


def build_buckets(granularity: Any, now: datetime) -> List[PeriodBucket]:
    """
    Generate the empty bucket sequence for ``granularity`` ending at ``now``.

    Raises:
        InvalidArgument: unknown granularity
    """
    granularity = parse_granularity(granularity)
    windows = _WINDOW_BUILDERS[granularity](now, BUCKET_COUNTS[granularity])
    return [
        PeriodBucket(name=name, start_date=window.start, end_date=window.end)
        for name, window in windows
    ]


def bucketize(deals: Iterable[Any], granularity: Any, now: datetime) -> List[PeriodBucket]:
    """
    Assign deals to period buckets.

    Args:
        deals: Objects exposing ``value`` and ``created_at`` (ORM rows or
            result rows). A null ``value`` counts as 0; a null
            ``created_at`` skips the deal.
        granularity: One of the Granularity values
        now: Reference time the trailing window ends at

    Returns:
        Buckets oldest first, values rounded to two decimal places
    """
    buckets = build_buckets(granularity, now)
    windows = [TimeWindow(b.start_date, b.end_date) for b in buckets]
    totals = [0.0] * len(buckets)

    for deal in deals:
        created_at = deal.created_at
        if created_at is None:
            continue
        for index, window in enumerate(windows):
            if window.contains(created_at):
                totals[index] += float(deal.value or 0)
                buckets[index].count += 1

    for bucket, total in zip(buckets, totals):
        bucket.value = round_currency(total)

    return buckets


async def sales_by_period(
    session: AsyncSession,
    granularity: Any,
    now: datetime,
) -> List[PeriodBucket]:
    """
    Load deals from the store and bucket them.

    The granularity is validated before the store is read. Only deals created
    on or after the start of the oldest bucket are fetched.
    """
    granularity = parse_granularity(granularity)
    window_start = build_buckets(granularity, now)[0].start_date

    result = await store.execute(
        session,
        select(Deal.value, Deal.created_at).where(Deal.created_at >= window_start),
        "deals for sales by period",
    )
    buckets = bucketize(result.all(), granularity, now)
    logger.info(
        "Sales by period computed",
        period=granularity.value,
        buckets=len(buckets),
        deals=sum(b.count for b in buckets),
    )
    return buckets
