"""
API Interface - FastAPI REST API.

Destination management, pushes, connection tests and push history.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
