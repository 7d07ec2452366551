"""
Destination Catalogue - Declarative list of destination types.

Each entry lists the config fields a destination needs before it can be
pushed to. Only available types have an adapter.
"""

from __future__ import annotations

from typing import Any

from .models import ConfigField, ConfigFieldType, DestinationType, DestinationTypeInfo

__all__ = [
    "DESTINATION_TYPES",
    "get_destination_type",
    "get_available_destination_types",
    "missing_required_fields",
]

DESTINATION_TYPES: tuple[DestinationTypeInfo, ...] = (
    DestinationTypeInfo(
        id=DestinationType.NOTION,
        name="Notion",
        description="Create database entries automatically",
        config_fields=[
            ConfigField(
                key="api_key",
                label="Internal Integration Secret",
                type=ConfigFieldType.TOKEN,
                required=True,
                placeholder="Enter your Notion internal integration secret",
                description="Your Notion internal integration secret token",
            ),
            ConfigField(
                key="database_id",
                label="Database ID",
                required=True,
                placeholder="Enter your Notion database ID",
                description="The ID of the Notion database where data will be pushed",
            ),
        ],
    ),
    DestinationTypeInfo(
        id=DestinationType.GOOGLE_SHEETS,
        name="Google Sheets",
        description=(
            "Export data to Google Sheets automatically. "
            "Connect multiple times for different spreadsheets."
        ),
        config_fields=[
            ConfigField(
                key="access_token",
                label="Access Token",
                type=ConfigFieldType.TOKEN,
                required=True,
                description="OAuth access token of the connected Google account",
            ),
            ConfigField(
                key="refresh_token",
                label="Refresh Token",
                type=ConfigFieldType.TOKEN,
                description="OAuth refresh token, used when the access token expires",
            ),
            ConfigField(
                key="spreadsheet_id",
                label="Spreadsheet ID",
                placeholder="Leave empty to create new spreadsheet",
                description="The ID of the Google Sheets spreadsheet (optional)",
            ),
            ConfigField(
                key="sheet_name",
                label="Sheet Name",
                placeholder="Sheet1",
                description="The name of the sheet within the spreadsheet",
            ),
        ],
    ),
    DestinationTypeInfo(
        id=DestinationType.AIRTABLE,
        name="Airtable",
        description="Populate bases with structured data",
        is_available=False,
        config_fields=[
            ConfigField(
                key="base_id",
                label="Base ID",
                required=True,
                placeholder="Enter your Airtable base ID",
                description="The ID of the Airtable base",
            ),
            ConfigField(
                key="table_name",
                label="Table Name",
                required=True,
                placeholder="Enter table name",
                description="The name of the table within the base",
            ),
        ],
    ),
    DestinationTypeInfo(
        id=DestinationType.QUICKBOOKS,
        name="QuickBooks",
        description="Import financial data seamlessly",
        is_available=False,
        config_fields=[
            ConfigField(
                key="company_id",
                label="Company ID",
                required=True,
                placeholder="Enter your QuickBooks company ID",
                description="Your QuickBooks company identifier",
            ),
        ],
    ),
)


def get_destination_type(type_id: str) -> DestinationTypeInfo | None:
    """Catalogue entry by id."""
    for info in DESTINATION_TYPES:
        if info.id.value == type_id:
            return info
    return None


def get_available_destination_types() -> list[DestinationTypeInfo]:
    """Destination types that can be pushed to."""
    return [info for info in DESTINATION_TYPES if info.is_available]


def missing_required_fields(type_id: str, config: dict[str, Any]) -> list[str]:
    """
    Keys of required config fields that are absent or blank.

    Args:
        type_id: Destination type id
        config: Destination config

    Returns:
        Missing keys (empty for unknown types)
    """
    info = get_destination_type(type_id)
    if info is None:
        return []
    return [
        field.key
        for field in info.config_fields
        if field.required and not str(config.get(field.key) or "").strip()
    ]
