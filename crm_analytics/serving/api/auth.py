"""
Request Authentication

A request is authenticated when its X-Firebase-UID header names a stored
user. With DEV_MODE enabled, ``X-Dev-Mode: true`` signs in as the demo user,
creating it on first use.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from crm_analytics.config import Settings, get_settings
from crm_analytics.database.connection import get_db_dependency
from crm_analytics.database.models import User
from crm_analytics.database.users import get_or_create_demo_user, get_user_by_uid

logger = structlog.get_logger(__name__)


async def require_user(
    x_firebase_uid: Optional[str] = Header(None),
    x_dev_mode: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db_dependency),
    settings: Settings = Depends(get_settings),
) -> User:
    """FastAPI dependency returning the authenticated user or raising 401."""
    if settings.security.dev_mode and x_dev_mode == "true":
        return await get_or_create_demo_user(db, settings)

    if not x_firebase_uid:
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = await get_user_by_uid(db, x_firebase_uid)
    if user is None:
        logger.warning("Unknown user", firebase_uid=x_firebase_uid)
        raise HTTPException(status_code=401, detail="User not found")
    return user
