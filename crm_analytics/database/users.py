"""
User Lookups

Shared by request authentication and the demo seeder.
"""

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_analytics.analytics import store
from crm_analytics.config import Settings
from crm_analytics.database.models import User

logger = structlog.get_logger(__name__)


async def get_user_by_uid(db: AsyncSession, firebase_uid: str) -> Optional[User]:
    result = await store.execute(
        db,
        select(User).where(User.firebase_uid == firebase_uid),
        "user",
    )
    return result.scalar_one_or_none()


async def get_or_create_demo_user(db: AsyncSession, settings: Settings) -> User:
    """Return the demo user, inserting it on first use."""
    user = await get_user_by_uid(db, settings.security.demo_user_uid)
    if user is not None:
        return user

    logger.info("Creating demo user", firebase_uid=settings.security.demo_user_uid)
    user = User(
        email=settings.security.demo_user_email,
        display_name="Demo User",
        photo_url="https://ui-avatars.com/api/?name=Demo+User&background=random",
        firebase_uid=settings.security.demo_user_uid,
        role="admin",
    )
    db.add(user)
    await db.flush()
    return user
