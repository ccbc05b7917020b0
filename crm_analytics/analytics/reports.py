"""
Report Aggregations

Secondary breakdowns shown on the reports page: task status distribution
and customer engagement ranking.
"""

from collections import Counter
from typing import List

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_analytics.analytics import store
from crm_analytics.analytics.errors import InvalidArgument
from crm_analytics.analytics.metrics import ratio_percent, round_percentage
from crm_analytics.analytics.schemas import (
    CustomerEngagement,
    TaskStatusReport,
    TaskStatusSlice,
)
from crm_analytics.database.models import Customer, Meeting, Task, TaskStatus

logger = structlog.get_logger(__name__)

MAX_ENGAGEMENT_LIMIT = 100


class ReportAggregator:
    """Reports page aggregations over one database session"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def task_status_breakdown(self) -> TaskStatusReport:
        """
        Count tasks per status.

        Tasks without a status count as pending. Statuses outside the known
        set are grouped under ``unknown``. Statuses with no tasks are left
        out.
        """
        query = select(Task.status, func.count(Task.id).label("count")).group_by(Task.status)
        result = await store.execute(self.session, query, "task status breakdown")

        counts: Counter = Counter()
        for row in result.all():
            status = TaskStatus.PENDING if row.status is None else TaskStatus.parse(row.status)
            counts[status] += int(row.count)

        total = sum(counts.values())
        statuses = [
            TaskStatusSlice(status=status.value, count=counts[status])
            for status in TaskStatus
            if counts[status] > 0
        ]
        return TaskStatusReport(
            statuses=statuses,
            total_tasks=total,
            completion_rate=round_percentage(ratio_percent(counts[TaskStatus.COMPLETED], total)),
        )

    async def customer_engagement(self, limit: int = 10) -> List[CustomerEngagement]:
        """
        Rank customers by number of meetings, most first.

        Customers without meetings are included with a count of 0. Ties are
        broken by customer id.
        """
        if not 1 <= limit <= MAX_ENGAGEMENT_LIMIT:
            raise InvalidArgument(f"limit must be between 1 and {MAX_ENGAGEMENT_LIMIT}")

        meetings = func.count(Meeting.id).label("meetings")
        query = (
            select(Customer.id, Customer.name, meetings)
            .outerjoin(Meeting, Meeting.customer_id == Customer.id)
            .group_by(Customer.id, Customer.name)
            .order_by(meetings.desc(), Customer.id)
            .limit(limit)
        )
        result = await store.execute(self.session, query, "customer engagement")
        ranking = [
            CustomerEngagement(customer_id=row.id, name=row.name, meetings=int(row.meetings))
            for row in result.all()
        ]
        logger.debug("Customer engagement computed", customers=len(ranking), limit=limit)
        return ranking
