"""
FastAPI Production Application

Main entry point for the CRM Analytics API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from crm_analytics.config import get_settings
from crm_analytics.config.logging import configure_logging
from crm_analytics.database.connection import init_database, close_database
from crm_analytics.serving.api import create_api_app

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting CRM Analytics API", environment=settings.app_env)

    # Keep serving health checks when the database is down
    try:
        await init_database()
    except Exception as e:
        logger.warning("Database init failed", error=str(e))

    yield

    logger.info("Shutting down...")
    await close_database()


app = create_api_app(settings, lifespan=lifespan)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
