"""
Test Suite Configuration
"""
from datetime import datetime
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from crm_analytics.config import Settings
from crm_analytics.config.settings import SecuritySettings
from crm_analytics.database.models import Base, Customer, Deal, Meeting, Task, User


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
        security=SecuritySettings(DEV_MODE=True, RATE_LIMIT_REQUESTS=1000),
    )


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for time-relative metrics"""
    return datetime(2024, 3, 15, 12, 0, 0)


@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine shared by every connection of one test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


class EntityFactory:
    """Adds CRM rows to a session with sensible defaults"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._default_customer: Optional[Customer] = None

    async def customer(self, created_at: datetime, name: str = "Acme Corp") -> Customer:
        customer = Customer(name=name, created_at=created_at, updated_at=created_at)
        self.session.add(customer)
        await self.session.flush()
        return customer

    async def _customer_id(self) -> int:
        if self._default_customer is None:
            self._default_customer = await self.customer(datetime(2020, 1, 1), name="Default Customer")
        return self._default_customer.id

    async def deal(
        self,
        value: Optional[float],
        stage: str,
        created_at: datetime,
        customer_id: Optional[int] = None,
    ) -> Deal:
        deal = Deal(
            name=f"{stage} deal",
            value=value,
            stage=stage,
            customer_id=customer_id or await self._customer_id(),
            created_at=created_at,
            updated_at=created_at,
        )
        self.session.add(deal)
        await self.session.flush()
        return deal

    async def task(self, status: Optional[str], due_date: Optional[datetime] = None) -> Task:
        task = Task(title="Follow up", status=status, due_date=due_date)
        self.session.add(task)
        await self.session.flush()
        return task

    async def meeting(
        self,
        start_time: datetime,
        status: str = "scheduled",
        created_at: Optional[datetime] = None,
        customer_id: Optional[int] = None,
    ) -> Meeting:
        created_at = created_at or start_time
        meeting = Meeting(
            title="Review",
            start_time=start_time,
            status=status,
            customer_id=customer_id,
            created_at=created_at,
            updated_at=created_at,
        )
        self.session.add(meeting)
        await self.session.flush()
        return meeting

    async def user(self, firebase_uid: str = "uid-1") -> User:
        user = User(email=f"{firebase_uid}@example.com", firebase_uid=firebase_uid)
        self.session.add(user)
        await self.session.flush()
        return user


@pytest_asyncio.fixture
async def factory(test_db) -> EntityFactory:
    """Entity factory bound to the test session"""
    return EntityFactory(test_db)
