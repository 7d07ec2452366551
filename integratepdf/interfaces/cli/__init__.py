"""
CLI Interface - Command-line tools for IntegratePDF.

Provides commands for:
- Pushing extracted fields to a destination
- Connection tests
- Credential migration
- Serving the API
"""

from .main import app, main

__all__ = ["app", "main"]
