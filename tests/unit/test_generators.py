"""
Unit Tests - Demo Data Generation and Seeding
"""
from datetime import datetime

import pytest
from sqlalchemy import func, select

from crm_analytics.analytics.metrics import MetricAggregator
from crm_analytics.data.generators import CrmDataGenerator
from crm_analytics.database.models import DealStage, MeetingStatus, TaskStatus, User
from crm_analytics.ingestion import seed_db
from crm_analytics.ingestion.seed_db import seed_records

NOW = datetime(2024, 3, 15, 12, 0, 0)


class TestCrmDataGenerator:
    """Tests for CrmDataGenerator"""

    def test_same_seed_same_data(self):
        first = CrmDataGenerator(seed=7, now=NOW).generate(10)
        second = CrmDataGenerator(seed=7, now=NOW).generate(10)

        assert first == second

    def test_different_seed_different_data(self):
        first = CrmDataGenerator(seed=7, now=NOW).generate(10)
        second = CrmDataGenerator(seed=8, now=NOW).generate(10)

        assert first != second

    def test_values_are_within_domain(self):
        data = CrmDataGenerator(seed=1, now=NOW).generate(40)

        stages = {s.value for s in DealStage}
        task_statuses = {s.value for s in TaskStatus}
        meeting_statuses = {s.value for s in MeetingStatus}
        for entry in data:
            customer = entry["customer"]
            assert customer["created_at"] <= customer["updated_at"] <= NOW
            for deal in entry["deals"]:
                assert deal["stage"] in stages
                assert customer["created_at"] <= deal["created_at"] <= NOW
                assert deal["value"] is None or deal["value"] > 0
            for task in entry["tasks"]:
                assert task["status"] in task_statuses
            for meeting in entry["meetings"]:
                assert meeting["status"] in meeting_statuses
                assert meeting["end_time"] > meeting["start_time"]

    def test_upcoming_meetings_are_never_completed(self):
        data = CrmDataGenerator(seed=3, now=NOW).generate(40)

        for entry in data:
            for meeting in entry["meetings"]:
                if meeting["start_time"] >= NOW:
                    assert meeting["status"] in ("scheduled", "rescheduled")


@pytest.mark.asyncio
class TestSeedRecords:
    """Tests for loading generated data"""

    async def test_inserts_every_record(self, test_db):
        data = CrmDataGenerator(seed=11, now=NOW).generate(15)

        counts = await seed_records(test_db, data)

        assert counts["customers"] == 15
        assert counts["deals"] == sum(len(e["deals"]) for e in data)

        aggregator = MetricAggregator(test_db)
        assert await aggregator.count_customers() == 15
        assert await aggregator.total_tasks() == counts["tasks"]
        stages = await aggregator.deals_by_stage()
        assert sum(s.count for s in stages) == counts["deals"]

    async def test_demo_user_seeding_is_repeatable(self, test_db, test_settings, monkeypatch):
        monkeypatch.setattr(seed_db, "get_settings", lambda: test_settings)

        first = await seed_db.seed_demo_user(test_db)
        second = await seed_db.seed_demo_user(test_db)

        assert first.id == second.id
        result = await test_db.execute(select(func.count()).select_from(User))
        assert result.scalar() == 1
