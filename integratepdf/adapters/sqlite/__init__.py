"""
SQLite Adapter - Integration store.
"""

from .repository import IntegrationRepository

__all__ = ["IntegrationRepository"]
