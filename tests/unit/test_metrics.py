"""
Unit Tests - Metric Aggregator
"""
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import insert
from sqlalchemy.exc import OperationalError

from crm_analytics.analytics.errors import StoreUnavailable
from crm_analytics.analytics.metrics import (
    MetricAggregator,
    percent_change,
    ratio_percent,
    round_currency,
    round_percentage,
)
from crm_analytics.database.models import Task


class TestRatioHelpers:
    """Tests for the guarded ratio helpers"""

    def test_percent_change(self):
        assert percent_change(15, 10) == 50.0
        assert percent_change(5, 10) == -50.0

    def test_percent_change_without_baseline_is_zero(self):
        assert percent_change(12, 0) == 0.0

    def test_ratio_percent_with_empty_denominator(self):
        assert ratio_percent(3, 0) == 0.0
        assert ratio_percent(1, 4) == 25.0

    def test_rounding(self):
        assert round_percentage(100 / 3) == 33.3
        assert round_currency(100 / 3) == 33.33

    @pytest.mark.parametrize(
        "value, expected",
        [(0.25, 0.3), (0.35, 0.4), (-0.25, -0.3), (-12.25, -12.3), (2.5, 2.5)],
    )
    def test_percentage_halves_round_away_from_zero(self, value, expected):
        assert round_percentage(value) == expected

    @pytest.mark.parametrize("value, expected", [(0.125, 0.13), (2.675, 2.68), (-0.125, -0.13)])
    def test_currency_halves_round_away_from_zero(self, value, expected):
        assert round_currency(value) == expected


@pytest.mark.asyncio
class TestDealMetrics:
    """Deal-derived metrics"""

    async def test_two_deal_scenario(self, test_db, factory):
        await factory.deal(100, "closed_won", datetime(2024, 1, 10))
        await factory.deal(200, "lead", datetime(2024, 2, 5))
        aggregator = MetricAggregator(test_db)

        assert await aggregator.total_sales() == 300.0
        assert await aggregator.avg_deal_size() == 150.0
        assert await aggregator.win_rate() == 50.0
        assert await aggregator.active_deals_count() == 1

        stages = await aggregator.deals_by_stage()
        assert [s.model_dump(by_alias=True) for s in stages] == [
            {"stage": "closed_won", "count": 1, "totalValue": 100.0},
            {"stage": "lead", "count": 1, "totalValue": 200.0},
        ]

    async def test_no_deals(self, test_db):
        aggregator = MetricAggregator(test_db)

        assert await aggregator.total_sales() == 0.0
        assert await aggregator.avg_deal_size() == 0.0
        assert await aggregator.win_rate() == 0.0
        assert await aggregator.active_deals_count() == 0
        assert await aggregator.deals_by_stage() == []

    async def test_null_value_counts_as_zero(self, test_db, factory):
        await factory.deal(None, "proposal", datetime(2024, 1, 1))
        await factory.deal(90, "proposal", datetime(2024, 1, 2))
        aggregator = MetricAggregator(test_db)

        assert await aggregator.total_sales() == 90.0
        assert await aggregator.avg_deal_size() == 45.0
        stages = await aggregator.deals_by_stage()
        assert stages[0].count == 2
        assert stages[0].total_value == 90.0

    async def test_active_deals_cover_open_stages_only(self, test_db, factory):
        for stage in ["lead", "qualification", "proposal", "negotiation", "closed_won", "closed_lost", "archived"]:
            await factory.deal(10, stage, datetime(2024, 1, 1))
        aggregator = MetricAggregator(test_db)

        assert await aggregator.active_deals_count() == 4

    async def test_deals_by_stage_omits_empty_stages_and_sums_to_total(self, test_db, factory):
        await factory.deal(10, "lead", datetime(2024, 1, 1))
        await factory.deal(20, "lead", datetime(2024, 1, 2))
        await factory.deal(30, "negotiation", datetime(2024, 1, 3))
        aggregator = MetricAggregator(test_db)

        stages = await aggregator.deals_by_stage()

        assert {s.stage for s in stages} == {"lead", "negotiation"}
        assert all(s.count > 0 for s in stages)
        assert sum(s.count for s in stages) == 3

    async def test_averages_are_rounded_once(self, test_db, factory):
        await factory.deal(100, "closed_won", datetime(2024, 1, 1))
        await factory.deal(0, "closed_lost", datetime(2024, 1, 1))
        await factory.deal(0, "closed_lost", datetime(2024, 1, 1))
        aggregator = MetricAggregator(test_db)

        assert await aggregator.avg_deal_size() == 33.33
        assert await aggregator.win_rate() == 33.3

    async def test_unrecognized_stages_merge_into_unknown(self, test_db, factory):
        await factory.deal(10, "archived", datetime(2024, 1, 1))
        await factory.deal(15, "on_hold", datetime(2024, 1, 2))
        await factory.deal(40, "lead", datetime(2024, 1, 3))
        aggregator = MetricAggregator(test_db)

        stages = await aggregator.deals_by_stage()

        assert [s.model_dump(by_alias=True) for s in stages] == [
            {"stage": "lead", "count": 1, "totalValue": 40.0},
            {"stage": "unknown", "count": 2, "totalValue": 25.0},
        ]

    async def test_half_cent_total_rounds_up(self, test_db, factory):
        await factory.deal(0.125, "lead", datetime(2024, 1, 1))
        aggregator = MetricAggregator(test_db)

        assert await aggregator.total_sales() == 0.13

    async def test_half_tenth_win_rate_rounds_up(self, test_db, factory):
        await factory.deal(10, "closed_won", datetime(2024, 1, 1))
        for _ in range(399):
            await factory.deal(10, "lead", datetime(2024, 1, 1))
        aggregator = MetricAggregator(test_db)

        # 1 / 400 = 0.25%
        assert await aggregator.win_rate() == 0.3

    async def test_deal_change_month_over_month(self, test_db, factory, now):
        await factory.deal(1, "lead", datetime(2024, 2, 1))
        await factory.deal(1, "lead", datetime(2024, 2, 10))
        await factory.deal(1, "lead", datetime(2024, 2, 29, 23, 59))
        await factory.deal(1, "lead", datetime(2024, 3, 2))
        aggregator = MetricAggregator(test_db)

        # 1 this month vs 3 last month
        assert await aggregator.deal_change(now) == -66.7


@pytest.mark.asyncio
class TestCustomerMetrics:
    """Customer growth and retention"""

    async def test_customer_growth(self, test_db, factory, now):
        await factory.customer(datetime(2024, 1, 20))
        await factory.customer(datetime(2024, 2, 3))
        await factory.customer(datetime(2024, 2, 29, 23, 30))
        await factory.customer(datetime(2024, 3, 1))
        await factory.customer(datetime(2024, 3, 10))
        await factory.customer(datetime(2024, 3, 15, 11, 0))
        aggregator = MetricAggregator(test_db)

        assert await aggregator.count_customers() == 6
        assert await aggregator.customer_growth(now) == 50.0

    async def test_customer_growth_without_previous_month_is_zero(self, test_db, factory, now):
        await factory.customer(datetime(2024, 1, 5))
        await factory.customer(datetime(2024, 3, 5))
        aggregator = MetricAggregator(test_db)

        assert await aggregator.customer_growth(now) == 0.0

    async def test_customers_created_after_now_are_not_new_this_month(self, test_db, factory, now):
        await factory.customer(datetime(2024, 2, 10))
        await factory.customer(datetime(2024, 3, 15, 18, 0))
        aggregator = MetricAggregator(test_db)

        assert await aggregator.customer_growth(now) == -100.0

    async def test_retention_rate(self, test_db, factory, now):
        await factory.customer(datetime(2023, 6, 1))
        await factory.customer(datetime(2024, 2, 1))
        await factory.customer(datetime(2024, 3, 5))
        aggregator = MetricAggregator(test_db)

        # end=3, new=1, starting=2 -> (3 - 1) / 2
        assert await aggregator.customer_retention_rate(now) == 100.0

    async def test_retention_rate_when_every_customer_is_new(self, test_db, factory, now):
        await factory.customer(datetime(2024, 3, 2))
        await factory.customer(datetime(2024, 3, 3))
        aggregator = MetricAggregator(test_db)

        assert await aggregator.customer_retention_rate(now) == 0.0

    async def test_empty_store(self, test_db, now):
        aggregator = MetricAggregator(test_db)

        assert await aggregator.count_customers() == 0
        assert await aggregator.customer_growth(now) == 0.0
        assert await aggregator.customer_retention_rate(now) == 0.0


@pytest.mark.asyncio
class TestTaskAndMeetingMetrics:
    """Tasks due today, completion and meetings"""

    async def test_tasks_due_today(self, test_db, factory, now):
        await factory.task("pending", datetime(2024, 3, 15, 0, 0))
        await factory.task("in_progress", datetime(2024, 3, 15, 23, 59))
        await factory.task("completed", datetime(2024, 3, 15, 9, 0))
        await factory.task("cancelled", datetime(2024, 3, 15, 10, 0))
        await factory.task("pending", datetime(2024, 3, 16, 0, 0))
        await factory.task("pending", datetime(2024, 3, 14, 23, 59))
        await factory.task("pending", None)
        aggregator = MetricAggregator(test_db)

        assert await aggregator.tasks_due_today(now) == 2
        # Same calendar day, later in the afternoon
        assert await aggregator.tasks_due_today(datetime(2024, 3, 15, 22, 0)) == 2
        assert await aggregator.total_tasks() == 7
        assert await aggregator.task_completion_rate() == 14.3

    async def test_no_tasks(self, test_db, now):
        aggregator = MetricAggregator(test_db)

        assert await aggregator.tasks_due_today(now) == 0
        assert await aggregator.task_completion_rate() == 0.0

    async def test_null_status_task_is_not_due(self, test_db, now):
        await test_db.execute(insert(Task).values(title="Legacy", status=None, due_date=datetime(2024, 3, 15, 8)))
        aggregator = MetricAggregator(test_db)

        assert await aggregator.total_tasks() == 1
        assert await aggregator.tasks_due_today(now) == 0

    async def test_upcoming_meetings(self, test_db, factory, now):
        await factory.meeting(now, "scheduled", created_at=datetime(2024, 3, 1))
        await factory.meeting(datetime(2024, 4, 1), "scheduled", created_at=datetime(2024, 3, 2))
        await factory.meeting(datetime(2024, 4, 2), "cancelled", created_at=datetime(2024, 3, 3))
        await factory.meeting(datetime(2024, 3, 14), "scheduled", created_at=datetime(2024, 2, 10))
        aggregator = MetricAggregator(test_db)

        assert await aggregator.upcoming_meetings_count(now) == 2
        # 3 created this month vs 1 last month
        assert await aggregator.meeting_change(now) == 200.0


@pytest.mark.asyncio
class TestDashboardStats:
    """Full snapshot"""

    async def test_snapshot_uses_injected_clock(self, test_db, factory):
        await factory.deal(100, "closed_won", datetime(2024, 1, 10))
        await factory.deal(200, "lead", datetime(2024, 2, 5))
        calls = []

        def clock():
            calls.append(1)
            return datetime(2024, 2, 15)

        stats = await MetricAggregator(test_db, clock).dashboard_stats()

        assert len(calls) == 1
        assert stats.total_sales == 300.0
        assert stats.avg_deal_size == 150.0
        assert stats.win_rate == 50.0
        assert stats.active_deals == 1
        assert stats.deal_change == 0.0
        assert stats.tasks_due_today == 0
        assert stats.task_completion == 0.0

    async def test_snapshot_is_idempotent(self, test_db, factory, now):
        await factory.customer(datetime(2024, 2, 1))
        await factory.deal(120, "proposal", datetime(2024, 3, 1))
        await factory.task("completed", datetime(2024, 3, 15, 9))
        await factory.meeting(datetime(2024, 3, 20), created_at=datetime(2024, 3, 3))
        aggregator = MetricAggregator(test_db)

        first = await aggregator.dashboard_stats(now)
        second = await aggregator.dashboard_stats(now)

        assert first == second

    async def test_snapshot_field_names(self, test_db, now):
        stats = await MetricAggregator(test_db).dashboard_stats(now)

        assert set(stats.model_dump(by_alias=True)) == {
            "customerCount", "customerGrowth", "activeDeals", "dealChange",
            "upcomingMeetings", "meetingChange", "tasksDueToday", "totalTasks",
            "taskCompletion", "totalSales", "avgDealSize", "winRate",
            "customerRetentionRate",
        }

    async def test_store_failure_fails_the_whole_snapshot(self, now):
        session = AsyncMock()
        session.execute.side_effect = OperationalError("SELECT count(*)", {}, ConnectionRefusedError())

        with pytest.raises(StoreUnavailable) as exc_info:
            await MetricAggregator(session).dashboard_stats(now)

        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert session.execute.await_count == 1
