"""
Metric Aggregator

Computes the scalar dashboard statistics from the current state of the
entity store. Every figure is a pushed-down SQL aggregate; time-relative
figures take an explicit ``now`` so a single snapshot is internally
consistent.

Ratios with an empty denominator are defined as 0. Percentages are rounded
to one decimal place and currency amounts to two, once, when an operation
returns. Exact halves round away from zero.
"""

from collections import defaultdict
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_analytics.analytics import store
from crm_analytics.analytics.schemas import DashboardStats, DealStageBucket
from crm_analytics.analytics.timeutils import Clock, month_comparison, today_window, utc_now
from crm_analytics.database.models import (
    Customer,
    Deal,
    DealStage,
    Meeting,
    MeetingStatus,
    OPEN_DEAL_STAGES,
    Task,
    TaskStatus,
)

logger = structlog.get_logger(__name__)


def percent_change(current: float, previous: float) -> float:
    """(current - previous) / previous * 100, or 0 without a baseline"""
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100


def ratio_percent(part: float, whole: float) -> float:
    """part / whole * 100, or 0 when whole is 0"""
    if whole == 0:
        return 0.0
    return part / whole * 100


def _round_half_up(value: float, exponent: str) -> float:
    """Round exact halves away from zero, on the shortest decimal form of ``value``"""
    return float(Decimal(repr(float(value))).quantize(Decimal(exponent), rounding=ROUND_HALF_UP))


def round_percentage(value: float) -> float:
    return _round_half_up(value, "0.1")


def round_currency(value: float) -> float:
    return _round_half_up(value, "0.01")


class MetricAggregator:
    """
    Dashboard metrics over one database session.

    Args:
        session: Open database session used for every read
        clock: Zero-argument callable returning the current naive UTC time
    """

    def __init__(self, session: AsyncSession, clock: Clock = utc_now):
        self.session = session
        self.clock = clock

    async def _count(self, model, *conditions, what: str) -> int:
        query = select(func.count()).select_from(model)
        if conditions:
            query = query.where(*conditions)
        return int(await store.scalar(self.session, query, what))

    async def _month_over_month(self, model, created_at, now: datetime, what: str) -> float:
        windows = month_comparison(now)
        current = await self._count(
            model,
            created_at >= windows.current.start,
            created_at < windows.current.end,
            what=f"{what} (current month)",
        )
        previous = await self._count(
            model,
            created_at >= windows.previous.start,
            created_at <= windows.previous.end,
            what=f"{what} (previous month)",
        )
        return round_percentage(percent_change(current, previous))

    async def _new_customers_this_month(self, now: datetime) -> int:
        window = month_comparison(now).current
        return await self._count(
            Customer,
            Customer.created_at >= window.start,
            Customer.created_at < window.end,
            what="new customers",
        )

    async def _total_deals(self) -> int:
        return await self._count(Deal, what="deal count")

    async def _sales_sum(self) -> float:
        query = select(func.coalesce(func.sum(Deal.value), 0))
        return float(await store.scalar(self.session, query, "total sales"))

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    async def count_customers(self) -> int:
        return await self._count(Customer, what="customer count")

    async def customer_growth(self, now: datetime) -> float:
        return await self._month_over_month(Customer, Customer.created_at, now, "customer growth")

    async def customer_retention_rate(self, now: datetime) -> float:
        """
        Retention proxy: customers at the end of the period minus those
        acquired this month, over the starting base.

        starting = end - new; rate = (end - new) / starting * 100, 0 when
        starting is 0.
        """
        end_count = await self.count_customers()
        new_count = await self._new_customers_this_month(now)
        starting = end_count - new_count
        if starting == 0:
            return 0.0
        return round_percentage((end_count - new_count) / starting * 100)

    # -------------------------------------------------------------------------
    # Deals
    # -------------------------------------------------------------------------

    async def active_deals_count(self) -> int:
        return await self._count(
            Deal,
            Deal.stage.in_([stage.value for stage in OPEN_DEAL_STAGES]),
            what="active deals",
        )

    async def deal_change(self, now: datetime) -> float:
        return await self._month_over_month(Deal, Deal.created_at, now, "deal change")

    async def total_sales(self) -> float:
        return round_currency(await self._sales_sum())

    async def avg_deal_size(self) -> float:
        total_deals = await self._total_deals()
        if total_deals == 0:
            return 0.0
        return round_currency(await self._sales_sum() / total_deals)

    async def win_rate(self) -> float:
        total_deals = await self._total_deals()
        won = await self._count(Deal, Deal.stage == DealStage.CLOSED_WON.value, what="won deals")
        return round_percentage(ratio_percent(won, total_deals))

    async def deals_by_stage(self) -> List[DealStageBucket]:
        """
        One bucket per stage present in the deals table, ordered by stage.

        Stage strings outside the known pipeline are merged into a single
        ``unknown`` bucket.
        """
        query = select(
            Deal.stage,
            func.count(Deal.id).label("count"),
            func.coalesce(func.sum(Deal.value), 0).label("total_value"),
        ).group_by(Deal.stage)
        result = await store.execute(self.session, query, "deals by stage")

        counts: Dict[DealStage, int] = defaultdict(int)
        totals: Dict[DealStage, float] = defaultdict(float)
        for row in result.all():
            stage = DealStage.parse(row.stage)
            counts[stage] += int(row.count)
            totals[stage] += float(row.total_value or 0)

        return [
            DealStageBucket(stage=stage.value, count=counts[stage], total_value=round_currency(totals[stage]))
            for stage in sorted(counts, key=lambda s: s.value)
        ]

    # -------------------------------------------------------------------------
    # Meetings
    # -------------------------------------------------------------------------

    async def upcoming_meetings_count(self, now: datetime) -> int:
        return await self._count(
            Meeting,
            Meeting.start_time >= now,
            Meeting.status == MeetingStatus.SCHEDULED.value,
            what="upcoming meetings",
        )

    async def meeting_change(self, now: datetime) -> float:
        return await self._month_over_month(Meeting, Meeting.created_at, now, "meeting change")

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    async def tasks_due_today(self, now: datetime) -> int:
        today = today_window(now)
        return await self._count(
            Task,
            Task.due_date >= today.start,
            Task.due_date < today.end,
            Task.status.not_in([TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value]),
            what="tasks due today",
        )

    async def total_tasks(self) -> int:
        return await self._count(Task, what="task count")

    async def task_completion_rate(self) -> float:
        total = await self.total_tasks()
        completed = await self._count(Task, Task.status == TaskStatus.COMPLETED.value, what="completed tasks")
        return round_percentage(ratio_percent(completed, total))

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    async def dashboard_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        """
        Compute the full dashboard snapshot.

        ``now`` is read from the clock once when not supplied and reused by
        every time-relative figure. Any store failure aborts the whole
        snapshot.
        """
        if now is None:
            now = self.clock()

        logger.debug("Computing dashboard stats", now=now.isoformat())

        stats = DashboardStats(
            customer_count=await self.count_customers(),
            customer_growth=await self.customer_growth(now),
            active_deals=await self.active_deals_count(),
            deal_change=await self.deal_change(now),
            upcoming_meetings=await self.upcoming_meetings_count(now),
            meeting_change=await self.meeting_change(now),
            tasks_due_today=await self.tasks_due_today(now),
            total_tasks=await self.total_tasks(),
            task_completion=await self.task_completion_rate(),
            total_sales=await self.total_sales(),
            avg_deal_size=await self.avg_deal_size(),
            win_rate=await self.win_rate(),
            customer_retention_rate=await self.customer_retention_rate(now),
        )

        logger.info(
            "Dashboard stats computed",
            customers=stats.customer_count,
            active_deals=stats.active_deals,
            total_sales=stats.total_sales,
        )
        return stats
