"""
FastAPI Application Factory

Creates and configures the replenishment API application.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from smartsupply.config import Settings, get_settings
from smartsupply.config.logging import configure_logging
from smartsupply.serving.api.middleware import RequestLoggingMiddleware
from smartsupply.serving.api.routes import health_router, replenishment_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()
    logger.info("Starting SmartSupply replenishment API", version=app.version)
    yield
    logger.info("Shutting down...")


def create_api_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="SmartSupply Replenishment API",
        description="Turns sales transaction exports into per-product reorder quantities",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(replenishment_router, prefix="/api/v1/replenishment", tags=["Replenishment"])

    return app
