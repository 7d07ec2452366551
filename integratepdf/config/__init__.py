"""
Configuration - Application settings and error taxonomy.
"""

from .errors import (
    ConfigurationError,
    DecryptionError,
    ErrorCode,
    IntegratePDFError,
    IntegrationError,
    NotFoundError,
    StorageError,
)
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "ErrorCode",
    "IntegratePDFError",
    "IntegrationError",
    "ConfigurationError",
    "DecryptionError",
    "StorageError",
    "NotFoundError",
]
