"""
Google Sheets Adapter - Tabular destination.

This is the ONLY place that calls the Sheets API and the Google token endpoint.
"""

from .client import GoogleSheetsClient, OAuthTokenRefresher, format_field_key_as_header
from .models import (
    AppendResult,
    GoogleSheetsConfig,
    Sheet,
    SheetRange,
    SheetsPushResult,
    Spreadsheet,
)

__all__ = [
    "GoogleSheetsClient",
    "OAuthTokenRefresher",
    "format_field_key_as_header",
    "GoogleSheetsConfig",
    "Spreadsheet",
    "Sheet",
    "SheetRange",
    "AppendResult",
    "SheetsPushResult",
]
