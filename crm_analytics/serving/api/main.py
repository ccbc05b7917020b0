"""
FastAPI Application Factory

Creates and configures the API application: middleware, error translation
and routers.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import structlog

from crm_analytics.analytics.errors import InvalidArgument, StoreUnavailable
from crm_analytics.config import Settings, get_settings
from crm_analytics.serving.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from crm_analytics.serving.api.routes import analytics_router, health_router

logger = structlog.get_logger(__name__)


async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    logger.error(
        "Could not load metrics",
        path=request.url.path,
        error=str(exc),
        cause=type(exc.__cause__).__name__ if exc.__cause__ else None,
        cause_message=str(exc.__cause__) if exc.__cause__ else None,
    )
    return JSONResponse(status_code=503, content={"message": "Could not load metrics"})


async def invalid_argument_handler(request: Request, exc: InvalidArgument) -> JSONResponse:
    logger.warning("Invalid argument", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=400, content={"message": str(exc)})


def create_api_app(settings: Optional[Settings] = None, lifespan=None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Settings to configure from, defaults to the cached settings
        lifespan: Optional lifespan context manager for startup/shutdown

    Returns:
        Configured FastAPI app instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="CRM Analytics API",
        description="Dashboard and report metrics for the CRM",
        version=settings.version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_exception_handler(StoreUnavailable, store_unavailable_handler)
    app.add_exception_handler(InvalidArgument, invalid_argument_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.rate_limit_requests,
        window_seconds=settings.security.rate_limit_window_seconds,
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router, prefix="/api", tags=["Health"])
    app.include_router(analytics_router, prefix="/api", tags=["Analytics"])

    @app.get("/api/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "CRM Analytics API",
            "version": settings.version,
            "environment": settings.app_env,
            "documentation": "/docs",
        }

    return app
