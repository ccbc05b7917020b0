"""
Demo Database Seeder

Creates the schema if needed and loads a generated CRM data set.

Usage:
    python -m crm_analytics.ingestion.seed_db --customers 60 --seed 42
"""

import argparse
import asyncio
from typing import Any, Dict, List

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from crm_analytics.config import get_settings
from crm_analytics.data.generators import CrmDataGenerator
from crm_analytics.database.connection import close_database, get_db, get_engine, init_database
from crm_analytics.database.models import Base, Customer, Deal, Meeting, Task, User
from crm_analytics.database.users import get_or_create_demo_user

logger = structlog.get_logger(__name__)


async def create_schema() -> None:
    """Create any missing tables"""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ready")


async def seed_records(db: AsyncSession, data: List[Dict[str, Any]]) -> Dict[str, int]:
    """
    Insert generated customers and their related rows.

    Returns:
        Number of rows inserted per table
    """
    counts = {"customers": 0, "deals": 0, "tasks": 0, "meetings": 0}

    for entry in data:
        customer = Customer(**entry["customer"])
        db.add(customer)
        await db.flush()

        db.add_all(Deal(customer_id=customer.id, **deal) for deal in entry["deals"])
        db.add_all(Task(customer_id=customer.id, **task) for task in entry["tasks"])
        db.add_all(Meeting(customer_id=customer.id, **meeting) for meeting in entry["meetings"])

        counts["customers"] += 1
        counts["deals"] += len(entry["deals"])
        counts["tasks"] += len(entry["tasks"])
        counts["meetings"] += len(entry["meetings"])

    await db.flush()
    return counts


async def seed_demo_user(db: AsyncSession) -> User:
    """Ensure the demo user exists; safe to run repeatedly."""
    return await get_or_create_demo_user(db, get_settings())


async def main(n_customers: int = 60, seed: int = 42) -> None:
    logger.info("Starting database seeding...", customers=n_customers, seed=seed)
    await init_database()

    try:
        await create_schema()
        data = CrmDataGenerator(seed=seed).generate(n_customers)
        async with get_db() as db:
            await seed_demo_user(db)
            counts = await seed_records(db, data)
        logger.info("Database seeding completed successfully!", **counts)
    except Exception as e:
        logger.error("Seeding failed", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        await close_database()


if __name__ == "__main__":
    from crm_analytics.config.logging import configure_logging

    parser = argparse.ArgumentParser(description="Seed the CRM database with demo data")
    parser.add_argument("--customers", type=int, default=60, help="Number of customers to generate")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(main(args.customers, args.seed))
