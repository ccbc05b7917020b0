"""
Entity Store Access

Thin read helpers over an AsyncSession. Every analytics query goes through
``execute`` so that store failures surface as StoreUnavailable, unretried.
"""

from typing import Any

from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm_analytics.analytics.errors import StoreUnavailable


async def execute(session: AsyncSession, query: Any, what: str) -> Result:
    """
    Run a read query.

    Args:
        session: Open database session
        query: SQLAlchemy selectable
        what: Name of the figure being read, used in the error message

    Raises:
        StoreUnavailable: The store could not be reached or the query failed
    """
    try:
        return await session.execute(query)
    except (SQLAlchemyError, OSError) as e:
        raise StoreUnavailable(f"Could not read {what}") from e


async def scalar(session: AsyncSession, query: Any, what: str) -> Any:
    """Run a single-value aggregate; NULL aggregates read as 0."""
    result = await execute(session, query, what)
    return result.scalar() or 0
