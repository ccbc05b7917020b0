"""
Time Window Helpers

All timestamps handled by the analytics engine are naive UTC datetimes,
matching the DateTime columns of the entity store. A request captures "now"
once and passes it to every helper below.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: current UTC time as a naive datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(moment: datetime) -> datetime:
    """Last representable instant of the day"""
    return moment.replace(hour=23, minute=59, second=59, microsecond=999999)


def start_of_month(moment: datetime) -> datetime:
    return start_of_day(moment).replace(day=1)


def shift_months(moment: datetime, months: int) -> datetime:
    """First day of the month ``months`` away from ``moment``'s month"""
    index = moment.year * 12 + (moment.month - 1) + months
    return datetime(index // 12, index % 12 + 1, 1)


def end_of_month(moment: datetime) -> datetime:
    """Last instant of the last day of ``moment``'s month"""
    return shift_months(moment, 1) - timedelta(microseconds=1)


class TimeWindow(NamedTuple):
    """Time interval; whether ``end`` is inclusive is up to the caller"""
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        """Inclusive membership test on both ends"""
        return self.start <= moment <= self.end


class MonthComparison(NamedTuple):
    """Current month-to-date window and the full previous calendar month"""
    current: TimeWindow   # [first of month, now)
    previous: TimeWindow  # [first of previous month, last instant of previous month]


def month_comparison(now: datetime) -> MonthComparison:
    first_current = start_of_month(now)
    first_previous = shift_months(now, -1)
    return MonthComparison(
        current=TimeWindow(first_current, now),
        previous=TimeWindow(first_previous, first_current - timedelta(microseconds=1)),
    )


def today_window(now: datetime) -> TimeWindow:
    """
    Calendar day containing ``now`` as [start of today, start of tomorrow).

    Computed by zeroing the time of day and adding one calendar day, so
    every call within the same day yields the same window.
    """
    today = start_of_day(now)
    return TimeWindow(today, today + timedelta(days=1))
