"""
Analytics response models.

Derived records are rebuilt on every request and never persisted. Field
names are snake_case in Python and camelCase on the wire.
"""
from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class DashboardStats(BaseModel):
    customer_count: int = Field(0, alias="customerCount")
    customer_growth: float = Field(0.0, alias="customerGrowth")             # % month over month
    active_deals: int = Field(0, alias="activeDeals")
    deal_change: float = Field(0.0, alias="dealChange")                     # % month over month
    upcoming_meetings: int = Field(0, alias="upcomingMeetings")
    meeting_change: float = Field(0.0, alias="meetingChange")               # % month over month
    tasks_due_today: int = Field(0, alias="tasksDueToday")
    total_tasks: int = Field(0, alias="totalTasks")
    task_completion: float = Field(0.0, alias="taskCompletion")             # %
    total_sales: float = Field(0.0, alias="totalSales")
    avg_deal_size: float = Field(0.0, alias="avgDealSize")
    win_rate: float = Field(0.0, alias="winRate")                           # %
    customer_retention_rate: float = Field(0.0, alias="customerRetentionRate")  # %

    model_config = {"populate_by_name": True}


class DealStageBucket(BaseModel):
    stage: str
    count: int
    total_value: float = Field(0.0, alias="totalValue")

    model_config = {"populate_by_name": True}


class PeriodBucket(BaseModel):
    """One time bucket of the sales-by-period report. Both ends inclusive."""
    name: str
    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")
    value: float = 0.0
    count: int = 0

    model_config = {"populate_by_name": True}


class TaskStatusSlice(BaseModel):
    status: str
    count: int


class TaskStatusReport(BaseModel):
    statuses: List[TaskStatusSlice]
    total_tasks: int = Field(0, alias="totalTasks")
    completion_rate: float = Field(0.0, alias="completionRate")

    model_config = {"populate_by_name": True}


class CustomerEngagement(BaseModel):
    customer_id: int = Field(alias="customerId")
    name: str
    meetings: int

    model_config = {"populate_by_name": True}
