"""
API Routes.
"""

from . import health, integrations

__all__ = ["health", "integrations"]
