"""
Analytics API Endpoints

REST API for the CRM dashboard and reports page.
"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from crm_analytics.analytics.metrics import MetricAggregator
from crm_analytics.analytics.periods import Granularity, sales_by_period
from crm_analytics.analytics.reports import MAX_ENGAGEMENT_LIMIT, ReportAggregator
from crm_analytics.analytics.schemas import (
    CustomerEngagement,
    DashboardStats,
    DealStageBucket,
    PeriodBucket,
    TaskStatusReport,
)
from crm_analytics.analytics.timeutils import Clock
from crm_analytics.database.connection import get_db_dependency
from crm_analytics.serving.api.auth import require_user
from crm_analytics.serving.api.deps import get_clock

router = APIRouter(dependencies=[Depends(require_user)])
logger = structlog.get_logger(__name__)


@router.get("/dashboard/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db_dependency),
    clock: Clock = Depends(get_clock),
) -> DashboardStats:
    """Dashboard headline metrics, computed fresh on every request."""
    now = clock()
    logger.info("get_dashboard_stats called", now=now.isoformat())
    return await MetricAggregator(db, clock).dashboard_stats(now)


@router.get("/deals/by-stage", response_model=List[DealStageBucket])
async def get_deals_by_stage(
    db: AsyncSession = Depends(get_db_dependency),
) -> List[DealStageBucket]:
    """Deal count and total value per pipeline stage present in the data."""
    buckets = await MetricAggregator(db).deals_by_stage()
    logger.info("Deals by stage returned", stages=len(buckets))
    return buckets


@router.get("/reports/sales-by-period", response_model=List[PeriodBucket])
async def get_sales_by_period(
    period: str = Query(Granularity.MONTHLY.value, description="weekly, monthly, quarterly or yearly"),
    db: AsyncSession = Depends(get_db_dependency),
    clock: Clock = Depends(get_clock),
) -> List[PeriodBucket]:
    """
    Value and count of deals created per period, oldest period first.

    ``period`` is validated by the bucketizer so that an unknown value is
    reported as an InvalidArgument rather than a schema error.
    """
    logger.info("get_sales_by_period called", period=period)
    return await sales_by_period(db, period, clock())


@router.get("/reports/task-status", response_model=TaskStatusReport)
async def get_task_status(
    db: AsyncSession = Depends(get_db_dependency),
) -> TaskStatusReport:
    """Task counts per status and overall completion rate."""
    return await ReportAggregator(db).task_status_breakdown()


@router.get("/reports/customer-engagement", response_model=List[CustomerEngagement])
async def get_customer_engagement(
    limit: int = Query(10, ge=1, le=MAX_ENGAGEMENT_LIMIT),
    db: AsyncSession = Depends(get_db_dependency),
) -> List[CustomerEngagement]:
    """Most engaged customers by number of meetings."""
    return await ReportAggregator(db).customer_engagement(limit)
