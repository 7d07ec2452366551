"""
Destination Adapters - Bind configured destinations to their API clients.

Wraps NotionClient and GoogleSheetsClient behind the push domain's
DestinationAdapter contract. Configs passed here are already decrypted.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from integratepdf.config import ConfigurationError, Settings
from integratepdf.domains.errors import ErrorSource, unsupported_destination
from integratepdf.domains.mapping import ExtractedField, FieldMapping
from integratepdf.domains.push.catalog import missing_required_fields
from integratepdf.domains.push.contracts import DestinationAdapter
from integratepdf.domains.push.models import Destination, DestinationType, PushOutcome

from .google_sheets import GoogleSheetsClient, GoogleSheetsConfig, OAuthTokenRefresher
from .notion import NotionClient

logger = logging.getLogger(__name__)

__all__ = ["NotionDestination", "GoogleSheetsDestination", "build_destination_adapter"]


class NotionDestination:
    """Pushes to one Notion database."""

    error_source = ErrorSource.NOTION

    def __init__(self, client: NotionClient, database_id: str) -> None:
        self.client = client
        self.database_id = database_id

    async def push(
        self,
        fields: Sequence[ExtractedField],
        mapping: FieldMapping | None = None,
        document_name: str | None = None,
    ) -> PushOutcome:
        page = await self.client.push_extracted_data(self.database_id, fields, mapping)
        return PushOutcome(external_id=page["id"], details={"url": page.get("url")})

    async def test_connection(self) -> bool:
        return await self.client.test_connection()

    async def describe(self) -> dict[str, Any]:
        database = await self.client.get_database(self.database_id)
        return database.model_dump(mode="json")

    async def suggest_mappings(self, fields: Sequence[ExtractedField]) -> FieldMapping:
        return await self.client.suggest_mappings(self.database_id, fields)

    def config_updates(self) -> dict[str, Any]:
        return {}

    async def close(self) -> None:
        await self.client.close()


class GoogleSheetsDestination:
    """Appends rows to one spreadsheet (created on first push if unset)."""

    error_source = ErrorSource.GOOGLE_SHEETS

    def __init__(self, client: GoogleSheetsClient) -> None:
        self.client = client
        self._created_spreadsheet_id: str | None = None

    async def push(
        self,
        fields: Sequence[ExtractedField],
        mapping: FieldMapping | None = None,
        document_name: str | None = None,
    ) -> PushOutcome:
        result = await self.client.push_extracted_data(
            fields,
            mapping,
            spreadsheet_id=self._created_spreadsheet_id,
            document_name=document_name,
        )
        if result.created:
            # A retry after a failed append must reuse the new spreadsheet
            self._created_spreadsheet_id = result.spreadsheet_id
        return PushOutcome(external_id=result.external_id, details=result.model_dump())

    async def test_connection(self) -> bool:
        return await self.client.test_connection()

    async def describe(self) -> dict[str, Any]:
        spreadsheet_id = self.client.config.spreadsheet_id
        if not spreadsheet_id:
            raise ConfigurationError("No spreadsheet configured for this integration")
        spreadsheet = await self.client.get_spreadsheet(spreadsheet_id)
        return spreadsheet.model_dump()

    async def suggest_mappings(self, fields: Sequence[ExtractedField]) -> FieldMapping:
        return await self.client.suggest_mappings(fields)

    def config_updates(self) -> dict[str, Any]:
        updates: dict[str, Any] = {}
        if self._created_spreadsheet_id:
            updates["spreadsheet_id"] = self._created_spreadsheet_id
        if self.client.refreshed_access_token:
            updates["access_token"] = self.client.refreshed_access_token
        return updates

    async def close(self) -> None:
        await self.client.close()


def build_destination_adapter(
    destination: Destination,
    config: dict[str, Any],
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DestinationAdapter:
    """
    Create the adapter for a destination.

    Args:
        destination: Stored destination
        config: Decrypted destination config
        settings: Application settings (API URLs, OAuth client)
        transport: Optional httpx transport (tests)

    Returns:
        DestinationAdapter

    Raises:
        IntegrationError: For listed but unimplemented destination types
        ConfigurationError: When required config values are missing
    """
    missing = missing_required_fields(destination.integration_type, config)
    if missing:
        raise ConfigurationError(
            f"Integration is missing required settings: {', '.join(missing)}",
            {"missing": missing},
        )

    if destination.integration_type == DestinationType.NOTION.value:
        client = NotionClient(
            api_key=config["api_key"],
            base_url=settings.notion_api_url,
            notion_version=settings.notion_version,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )
        return NotionDestination(client, config["database_id"])

    if destination.integration_type == DestinationType.GOOGLE_SHEETS.value:
        refresher = OAuthTokenRefresher(
            client_id=settings.google_client_id,
            client_secret=(
                settings.google_client_secret.get_secret_value()
                if settings.google_client_secret
                else None
            ),
            token_url=settings.google_token_url,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )
        sheets_config = GoogleSheetsConfig(
            access_token=config["access_token"],
            refresh_token=config.get("refresh_token") or None,
            spreadsheet_id=config.get("spreadsheet_id") or None,
            sheet_name=config.get("sheet_name") or "Sheet1",
        )
        client = GoogleSheetsClient(
            sheets_config,
            refresher=refresher,
            base_url=settings.google_sheets_api_url,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )
        return GoogleSheetsDestination(client)

    logger.warning("No adapter for integration type %s", destination.integration_type)
    raise unsupported_destination(destination.integration_type)
