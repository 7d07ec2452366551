"""
FastAPI Main Application - Push API entry point.

Run with: uvicorn integratepdf.interfaces.api.main:app --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from integratepdf import __version__
from integratepdf.config import get_settings

from .deps import cleanup_services, init_services
from .middleware import (
    ErrorHandlerMiddleware,
    LatencyMiddleware,
    RateLimitMiddleware,
    RequestContextMiddleware,
)
from .routes import health, integrations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("Starting IntegratePDF API...")
    logger.info("  Database: %s", settings.db_path)
    if settings.encryption_key is None:
        logger.warning("  ENCRYPTION_KEY is not set: credential endpoints will fail")

    await init_services()
    logger.info("  Services initialized")

    yield

    logger.info("Shutting down IntegratePDF API...")
    await cleanup_services()


def create_app() -> FastAPI:
    """Create FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="IntegratePDF Push API",
        description="Push extracted PDF data into Notion databases and Google Sheets",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters - first added = outermost)
    # 1. Rate limiting (outermost - reject early)
    app.add_middleware(RateLimitMiddleware, requests_per_minute=60, pushes_per_minute=30)

    # 2. Error handling (catch exceptions from inner layers)
    app.add_middleware(ErrorHandlerMiddleware)

    # 3. Latency tracking
    app.add_middleware(LatencyMiddleware)

    # 4. Request context (innermost custom - runs first)
    app.add_middleware(RequestContextMiddleware)

    # 5. CORS (framework middleware)
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8000",
    ]
    if settings.api_debug:
        allowed_origins.append("http://localhost:*")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(integrations.router, prefix="/api/integrations", tags=["Integrations"])

    return app


# Create app instance
app = create_app()
