"""
Health Routes - System health and status endpoints.
"""

from typing import Any

from fastapi import APIRouter

from integratepdf import __version__

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "integratepdf"}


@router.get("/api")
async def api_info() -> dict[str, Any]:
    """API info endpoint."""
    return {
        "name": "IntegratePDF Push API",
        "version": __version__,
        "description": "Push extracted PDF data into Notion databases and Google Sheets",
        "docs": "/docs",
    }
