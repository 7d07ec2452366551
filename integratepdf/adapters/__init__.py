"""
Adapters - External service integrations.

All external API calls are wrapped here to isolate domains from third-party changes.
"""

from .destinations import GoogleSheetsDestination, NotionDestination, build_destination_adapter
from .google_sheets import GoogleSheetsClient, OAuthTokenRefresher
from .notion import NotionClient
from .sqlite import IntegrationRepository

__all__ = [
    # Destinations
    "NotionClient",
    "GoogleSheetsClient",
    "OAuthTokenRefresher",
    "NotionDestination",
    "GoogleSheetsDestination",
    "build_destination_adapter",
    # Storage
    "IntegrationRepository",
]
