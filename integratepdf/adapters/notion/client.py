"""
Notion Client - Typed-schema destination adapter.

Features:
- Async HTTP client
- Fresh schema fetch per push (live select/status options)
- Field auto-mapping with conflict avoidance
- Per-property value coercion
- Classified errors (never raw httpx exceptions)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import httpx

from integratepdf.domains.errors import ErrorSource, classify, invalid_response
from integratepdf.domains.mapping import (
    ExtractedField,
    FieldMapping,
    find_matching_target,
    suggest_mappings,
)

from .formatting import format_property_value, text_value
from .models import NotionDatabase

logger = logging.getLogger(__name__)

__all__ = ["NotionClient"]


class NotionClient:
    """
    Notion API client for pushing extracted fields as database pages.

    Example:
        >>> client = NotionClient(api_key="secret_xxx")
        >>> page = await client.push_extracted_data("db-id", fields)
        >>> print(page["id"])
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.notion.com/v1",
        notion_version: str = "2022-06-28",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Notion client.

        Args:
            api_key: Decrypted internal integration secret
            base_url: Notion API URL
            notion_version: Notion-Version header value
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.notion_version = notion_version
        self.timeout = timeout
        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Notion-Version": self.notion_version,
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def _request(
        self,
        method: str,
        endpoint: str,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request; failures are raised as IntegrationError."""
        client = await self._get_client()
        try:
            response = await client.request(method, endpoint, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise classify(e, ErrorSource.NOTION) from e

        try:
            return response.json()
        except ValueError as e:
            raise invalid_response(response, ErrorSource.NOTION) from e

    async def test_connection(self) -> bool:
        """Check the API key; never raises."""
        try:
            await self._request("GET", "/users/me")
            return True
        except Exception as e:
            logger.error("Notion connection test failed: %s", e)
            return False

    async def get_database(self, database_id: str) -> NotionDatabase:
        """
        Fetch a database schema, including current option lists.

        Args:
            database_id: Notion database ID

        Returns:
            NotionDatabase with parsed properties
        """
        data = await self._request("GET", f"/databases/{database_id}")
        return NotionDatabase.from_api(data)

    async def query_database(
        self,
        database_id: str,
        filter: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Query database pages."""
        payload: dict[str, Any] = {}
        if filter:
            payload["filter"] = filter
        data = await self._request("POST", f"/databases/{database_id}/query", payload)
        return data.get("results", [])

    async def create_page(
        self,
        database_id: str,
        properties: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Create a page in a database.

        Args:
            database_id: Parent database ID
            properties: Already formatted property payloads

        Returns:
            Created page object
        """
        payload = {
            "parent": {"database_id": database_id},
            "properties": properties,
        }
        logger.debug("Creating Notion page with properties: %s", list(properties))

        page = await self._request("POST", "/pages", payload)
        logger.info("Notion page created: %s", page.get("id"))
        return page

    def build_properties(
        self,
        database: NotionDatabase,
        fields: Sequence[ExtractedField],
        mapping: FieldMapping | None = None,
    ) -> dict[str, Any]:
        """
        Map and format extracted fields for a database schema.

        Explicit mapping entries are used first; remaining fields are
        auto-mapped to writable properties not yet claimed in this push.
        Each property is written once: a later field targeting a property
        already written is skipped. Values that cannot be formatted are
        omitted. A title is synthesized when no field supplied one.
        """
        mapping = mapping or {}
        properties: dict[str, Any] = {}
        writable = [name for name, prop in database.properties.items() if prop.type.is_writable]
        claimed = {name for name in mapping.values() if name in database.properties}

        for field in fields:
            target = mapping.get(field.field_key)

            if target is None:
                target = find_matching_target(field.field_key, writable)
                if target is None:
                    logger.debug("No mapping found for field: %s", field.field_key)
                    continue
                if target in claimed:
                    logger.debug("Skipping %s -> %s (already used)", field.field_key, target)
                    continue
                logger.debug("Auto-mapped %s -> %s", field.field_key, target)
                claimed.add(target)

            prop = database.properties.get(target)
            if prop is None:
                logger.warning("Mapped property %r not in database %s", target, database.id)
                continue
            if prop.name in properties:
                logger.warning(
                    "Skipping %s -> %s: property already written by another field",
                    field.field_key,
                    prop.name,
                )
                continue

            value = format_property_value(field.field_value, prop)
            if value is not None:
                properties[prop.name] = value

        title_prop = database.title_property
        if title_prop is not None and title_prop.name not in properties:
            today = datetime.now(timezone.utc).date().isoformat()
            properties[title_prop.name] = text_value("title", f"Document {today}")
            logger.info("Added default title: %s", title_prop.name)

        return properties

    async def push_extracted_data(
        self,
        database_id: str,
        fields: Sequence[ExtractedField],
        mapping: FieldMapping | None = None,
    ) -> dict[str, Any]:
        """
        Push extracted fields as a new database page.

        Args:
            database_id: Target database ID
            fields: Extracted fields
            mapping: Optional explicit field_key -> property name mapping

        Returns:
            Created page object
        """
        database = await self.get_database(database_id)
        logger.info(
            "Pushing %d fields to Notion database %s (%d properties)",
            len(fields),
            database.id,
            len(database.properties),
        )

        properties = self.build_properties(database, fields, mapping)
        return await self.create_page(database_id, properties)

    async def suggest_mappings(
        self,
        database_id: str,
        fields: Sequence[ExtractedField],
    ) -> FieldMapping:
        """Preview the auto-mapping for a database."""
        database = await self.get_database(database_id)
        writable = [name for name, prop in database.properties.items() if prop.type.is_writable]
        return suggest_mappings(fields, writable)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> NotionClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
