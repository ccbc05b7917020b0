"""
Synthetic CRM Data Generator

Generates a reproducible demo data set for development and manual testing:
- Customers created over the last ~18 months
- Deals across every pipeline stage
- Tasks across every status, some due today
- Meetings in the past and upcoming
"""

import random
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from faker import Faker

from crm_analytics.analytics.timeutils import start_of_day, utc_now
from crm_analytics.database.models import DealStage, MeetingStatus, TaskStatus


# =============================================================================
# CONFIGURATION
# =============================================================================

INDUSTRIES = ["Software", "Manufacturing", "Healthcare", "Retail", "Finance", "Logistics", "Education"]

DEAL_STAGES = [
    (DealStage.LEAD, 0.25),
    (DealStage.QUALIFICATION, 0.20),
    (DealStage.PROPOSAL, 0.15),
    (DealStage.NEGOTIATION, 0.10),
    (DealStage.CLOSED_WON, 0.20),
    (DealStage.CLOSED_LOST, 0.10),
]

STAGE_PROBABILITY = {
    DealStage.LEAD: 10,
    DealStage.QUALIFICATION: 25,
    DealStage.PROPOSAL: 50,
    DealStage.NEGOTIATION: 75,
    DealStage.CLOSED_WON: 100,
    DealStage.CLOSED_LOST: 0,
}

TASK_STATUSES = [
    (TaskStatus.PENDING, 0.35),
    (TaskStatus.IN_PROGRESS, 0.25),
    (TaskStatus.COMPLETED, 0.30),
    (TaskStatus.CANCELLED, 0.10),
]

PRIORITIES = ["low", "medium", "high", "urgent"]
MEETING_TYPES = ["in_person", "video", "phone"]
HISTORY_DAYS = 540


class CrmDataGenerator:
    """
    Generate customers with their deals, tasks and meetings.

    All randomness comes from one seeded Random and one seeded Faker, so the
    same seed and ``now`` always produce the same data set.
    """

    def __init__(self, seed: int = 42, now: Optional[datetime] = None):
        self.now = now or utc_now()
        self.random = random.Random(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)

    def _pick(self, weighted):
        values, weights = zip(*weighted)
        return self.random.choices(values, weights=weights)[0]

    def _moment_between(self, start: datetime, end: datetime) -> datetime:
        span = max((end - start).total_seconds(), 0)
        return start + timedelta(seconds=self.random.uniform(0, span))

    def customer(self) -> Dict[str, Any]:
        created_at = self.now - timedelta(days=self.random.uniform(0, HISTORY_DAYS))
        company = self.fake.company()
        return {
            "name": company,
            "email": self.fake.company_email(),
            "phone": self.fake.phone_number(),
            "address": self.fake.street_address(),
            "city": self.fake.city(),
            "state": self.fake.state_abbr(),
            "zip_code": self.fake.postcode(),
            "country": "US",
            "industry": self.random.choice(INDUSTRIES),
            "status": "active" if self.random.random() > 0.15 else "inactive",
            "website": f"https://{self.fake.domain_name()}",
            "created_at": created_at,
            "updated_at": self._moment_between(created_at, self.now),
        }

    def deals(self, customer: Dict[str, Any]) -> List[Dict[str, Any]]:
        deals = []
        for _ in range(self.random.randint(0, 4)):
            stage = self._pick(DEAL_STAGES)
            created_at = self._moment_between(customer["created_at"], self.now)
            deals.append({
                "name": f"{customer['name']} - {self.fake.bs().title()}",
                "value": round(self.random.uniform(1000, 75000), 2) if self.random.random() > 0.05 else None,
                "currency": "USD",
                "stage": stage.value,
                "probability": STAGE_PROBABILITY[stage],
                "expected_close_date": created_at + timedelta(days=self.random.randint(14, 120)),
                "created_at": created_at,
                "updated_at": self._moment_between(created_at, self.now),
            })
        return deals

    def tasks(self, customer: Dict[str, Any]) -> List[Dict[str, Any]]:
        today = start_of_day(self.now)
        tasks = []
        for _ in range(self.random.randint(0, 3)):
            status = self._pick(TASK_STATUSES)
            roll = self.random.random()
            if roll < 0.2:
                due_date = today + timedelta(hours=self.random.uniform(8, 18))
            elif roll < 0.9:
                due_date = today + timedelta(days=self.random.randint(-30, 30), hours=self.random.randint(8, 18))
            else:
                due_date = None
            created_at = self._moment_between(customer["created_at"], self.now)
            tasks.append({
                "title": self.fake.sentence(nb_words=5).rstrip("."),
                "description": self.fake.paragraph(nb_sentences=2),
                "due_date": due_date,
                "priority": self.random.choice(PRIORITIES),
                "status": status.value,
                "created_at": created_at,
                "updated_at": self._moment_between(created_at, self.now),
            })
        return tasks

    def meetings(self, customer: Dict[str, Any]) -> List[Dict[str, Any]]:
        meetings = []
        for _ in range(self.random.randint(0, 5)):
            created_at = self._moment_between(customer["created_at"], self.now)
            start_time = created_at + timedelta(days=self.random.randint(1, 45), hours=self.random.randint(8, 17))
            if start_time >= self.now:
                status = MeetingStatus.SCHEDULED if self.random.random() > 0.1 else MeetingStatus.RESCHEDULED
            else:
                status = MeetingStatus.COMPLETED if self.random.random() > 0.2 else MeetingStatus.CANCELLED
            meetings.append({
                "title": f"{self.random.choice(['Intro', 'Demo', 'Review', 'Negotiation'])} with {customer['name']}",
                "start_time": start_time,
                "end_time": start_time + timedelta(minutes=self.random.choice([30, 45, 60])),
                "location": self.fake.city(),
                "meeting_type": self.random.choice(MEETING_TYPES),
                "status": status.value,
                "created_at": created_at,
                "updated_at": created_at,
            })
        return meetings

    def generate(self, n_customers: int = 60) -> List[Dict[str, Any]]:
        """
        Generate ``n_customers`` customers with their related records.

        Returns:
            One dict per customer with ``customer``, ``deals``, ``tasks`` and
            ``meetings`` keys
        """
        data = []
        for _ in range(n_customers):
            customer = self.customer()
            data.append({
                "customer": customer,
                "deals": self.deals(customer),
                "tasks": self.tasks(customer),
                "meetings": self.meetings(customer),
            })
        return data
