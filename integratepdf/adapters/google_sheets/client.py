"""
Google Sheets Client - Tabular destination adapter.

Features:
- Async HTTP client against the Sheets v4 REST API
- OAuth access token refresh (one refresh-and-retry per call)
- Spreadsheet auto-creation
- Header row on first push
- Classified errors (never raw httpx exceptions)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from integratepdf.config.errors import ConfigurationError
from integratepdf.domains.errors import (
    ErrorSource,
    classify,
    classify_status,
    invalid_response,
)
from integratepdf.domains.mapping import ExtractedField, FieldMapping, suggest_mappings

from .models import (
    DEFAULT_DOCUMENT_NAME,
    SPREADSHEET_URL,
    AppendResult,
    GoogleSheetsConfig,
    SheetRange,
    SheetsPushResult,
    Spreadsheet,
)

logger = logging.getLogger(__name__)

__all__ = ["GoogleSheetsClient", "OAuthTokenRefresher", "format_field_key_as_header"]


def format_field_key_as_header(field_key: str) -> str:
    """Turn ``invoice_number`` into ``Invoice Number``."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in field_key.split("_"))


def _a1(sheet_title: str, cells: str) -> str:
    """A1 range for a sheet, quoting titles that need it."""
    if sheet_title.replace("_", "").isalnum():
        return f"{sheet_title}!{cells}"
    escaped = sheet_title.replace("'", "''")
    return f"'{escaped}'!{cells}"


class OAuthTokenRefresher:
    """Exchanges a refresh token for a new access token."""

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        token_url: str = "https://oauth2.googleapis.com/token",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.timeout = timeout
        self._transport = transport

    async def refresh(self, refresh_token: str) -> str:
        """
        Request a new access token.

        Args:
            refresh_token: Decrypted OAuth refresh token

        Returns:
            New access token

        Raises:
            ConfigurationError: If Google OAuth client credentials are missing
            IntegrationError: If Google rejects the refresh
        """
        if not self.client_id or not self.client_secret:
            raise ConfigurationError("Google OAuth client is not configured")

        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(self.token_url, data=data)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error("Failed to refresh Google access token: HTTP %d", e.response.status_code)
                if e.response.status_code in (400, 401):
                    # invalid_grant: the refresh token was revoked or expired
                    raise classify_status(401, "Access token refresh failed", ErrorSource.GOOGLE_SHEETS) from e
                raise classify(e, ErrorSource.GOOGLE_SHEETS) from e
            except httpx.HTTPError as e:
                raise classify(e, ErrorSource.GOOGLE_SHEETS) from e

        try:
            body = response.json()
        except ValueError as e:
            raise invalid_response(response, ErrorSource.GOOGLE_SHEETS) from e

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            raise classify_status(401, "Token response had no access_token", ErrorSource.GOOGLE_SHEETS)
        return access_token


class GoogleSheetsClient:
    """
    Google Sheets API client for appending extracted fields as rows.

    Example:
        >>> client = GoogleSheetsClient(GoogleSheetsConfig(access_token="ya29..."))
        >>> result = await client.push_extracted_data(fields, document_name="invoice.pdf")
        >>> print(result.external_id)
    """

    def __init__(
        self,
        config: GoogleSheetsConfig,
        refresher: OAuthTokenRefresher | None = None,
        base_url: str = "https://sheets.googleapis.com/v4",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Google Sheets client.

        Args:
            config: Decrypted destination config
            refresher: Token refresher used once per call on a 401
            base_url: Sheets API URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.config = config
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._refresher = refresher
        self._access_token = config.access_token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.refreshed_access_token: str | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _send(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None,
        payload: dict[str, Any] | None,
    ) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(
                method,
                endpoint,
                params=params,
                json=payload,
                headers={"Authorization": f"Bearer {self._access_token}"},
            )
        except httpx.HTTPError as e:
            raise classify(e, ErrorSource.GOOGLE_SHEETS) from e

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request, refreshing the access token at most once on 401."""
        response = await self._send(method, endpoint, params, payload)

        if response.status_code == 401 and self._refresher and self.config.refresh_token:
            logger.info("Google access token rejected, refreshing")
            self._access_token = await self._refresher.refresh(self.config.refresh_token)
            self.refreshed_access_token = self._access_token
            response = await self._send(method, endpoint, params, payload)

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise classify(e, ErrorSource.GOOGLE_SHEETS) from e

        try:
            return response.json()
        except ValueError as e:
            raise invalid_response(response, ErrorSource.GOOGLE_SHEETS) from e

    async def test_connection(self) -> bool:
        """Check the token against the configured spreadsheet; never raises."""
        if not self.config.spreadsheet_id:
            logger.warning("Google Sheets connection test skipped: no spreadsheet configured")
            return False
        try:
            await self.get_spreadsheet(self.config.spreadsheet_id)
            return True
        except Exception as e:
            logger.error("Google Sheets connection test failed: %s", e)
            return False

    async def get_spreadsheet(self, spreadsheet_id: str) -> Spreadsheet:
        """Fetch spreadsheet metadata and its sheets."""
        data = await self._request(
            "GET",
            f"/spreadsheets/{spreadsheet_id}",
            params={"includeGridData": "false"},
        )
        return Spreadsheet.from_api(data)

    async def get_sheet_data(self, spreadsheet_id: str, range: str) -> SheetRange:
        """
        Read the values of an A1 range.

        Args:
            spreadsheet_id: Spreadsheet ID
            range: A1 notation, e.g. "Sheet1!A:Z"

        Returns:
            SheetRange (values empty when the range is empty)
        """
        data = await self._request(
            "GET",
            f"/spreadsheets/{spreadsheet_id}/values/{quote(range, safe='!:')}",
        )
        return SheetRange.from_api(data)

    async def get_headers(self, spreadsheet_id: str, sheet_name: str | None = None) -> list[str]:
        """First row of a sheet, used for mapping previews."""
        spreadsheet = await self.get_spreadsheet(spreadsheet_id)
        sheet = spreadsheet.find_sheet(sheet_name or self.config.sheet_name)
        if sheet is None:
            return []
        data = await self.get_sheet_data(spreadsheet_id, _a1(sheet.title, "1:1"))
        return [str(v) for v in data.values[0]] if data.values else []

    async def create_spreadsheet(self, title: str) -> Spreadsheet:
        """Create a new spreadsheet owned by the connected account."""
        data = await self._request("POST", "/spreadsheets", payload={"properties": {"title": title}})
        spreadsheet = Spreadsheet.from_api(data)
        logger.info("Created spreadsheet %s (%s)", spreadsheet.id, title)
        return spreadsheet

    async def append_row(
        self,
        spreadsheet_id: str,
        range: str,
        values: list[list[str]],
    ) -> AppendResult:
        """
        Append rows after the last row of a table.

        Args:
            spreadsheet_id: Spreadsheet ID
            range: A1 range locating the table, e.g. "Sheet1!A:A"
            values: Rows of cell values (interpreted as if typed by a user)

        Returns:
            AppendResult
        """
        data = await self._request(
            "POST",
            f"/spreadsheets/{spreadsheet_id}/values/{quote(range, safe='!:')}:append",
            params={"valueInputOption": "USER_ENTERED"},
            payload={"values": values},
        )
        logger.info("Appended %d row(s) to %s", len(values), spreadsheet_id)
        return AppendResult.from_api(data)

    @staticmethod
    def build_row(
        fields: Sequence[ExtractedField],
        mapping: FieldMapping | None = None,
    ) -> tuple[list[str], list[str]]:
        """
        Headers and values for one document.

        With a non-empty mapping only mapped fields are written, under their
        mapped header; otherwise every field is written under its
        title-cased key.
        """
        headers: list[str] = []
        values: list[str] = []

        if mapping:
            for field in fields:
                column = mapping.get(field.field_key)
                if column:
                    headers.append(column)
                    values.append(field.field_value)
        else:
            for field in fields:
                headers.append(format_field_key_as_header(field.field_key))
                values.append(field.field_value)

        return headers, values

    async def push_extracted_data(
        self,
        fields: Sequence[ExtractedField],
        mapping: FieldMapping | None = None,
        spreadsheet_id: str | None = None,
        sheet_name: str | None = None,
        create_headers: bool | None = None,
        document_name: str | None = None,
    ) -> SheetsPushResult:
        """
        Append extracted fields as one row.

        Args:
            fields: Extracted fields
            mapping: Optional field_key -> column header mapping
            spreadsheet_id: Overrides the configured spreadsheet
            sheet_name: Overrides the configured sheet
            create_headers: Write a header row when the sheet is empty
            document_name: Used to name an auto-created spreadsheet

        Returns:
            SheetsPushResult
        """
        spreadsheet_id = spreadsheet_id or self.config.spreadsheet_id
        sheet_name = sheet_name or self.config.sheet_name
        if create_headers is None:
            create_headers = self.config.create_headers

        created = False
        if not spreadsheet_id:
            today = datetime.now(timezone.utc).date().isoformat()
            title = f"{document_name or DEFAULT_DOCUMENT_NAME} - {today}"
            spreadsheet_id = (await self.create_spreadsheet(title)).id
            created = True

        spreadsheet = await self.get_spreadsheet(spreadsheet_id)
        sheet = spreadsheet.find_sheet(sheet_name)
        if sheet is None:
            raise ConfigurationError(f'Sheet "{sheet_name}" not found', {"spreadsheet_id": spreadsheet_id})
        if sheet.title != sheet_name:
            logger.info("Sheet %r not found, using %r", sheet_name, sheet.title)

        headers, values = self.build_row(fields, mapping)
        logger.info("Pushing %d fields to spreadsheet %s", len(values), spreadsheet_id)

        rows: list[list[str]] = []
        if create_headers:
            existing = await self.get_sheet_data(spreadsheet_id, _a1(sheet.title, "A:Z"))
            if not existing.values:
                rows.append(headers)
        rows.append(values)

        result = await self.append_row(spreadsheet_id, _a1(sheet.title, "A:A"), rows)

        return SheetsPushResult(
            spreadsheet_id=spreadsheet_id,
            spreadsheet_url=SPREADSHEET_URL.format(spreadsheet_id=spreadsheet_id),
            sheet_name=sheet.title,
            updated_range=result.updated_range,
            updated_rows=result.updated_rows,
            created=created,
        )

    async def suggest_mappings(
        self,
        fields: Sequence[ExtractedField],
        headers: Sequence[str] | None = None,
    ) -> FieldMapping:
        """Preview the mapping onto existing column headers."""
        if headers is None:
            if not self.config.spreadsheet_id:
                return {}
            headers = await self.get_headers(self.config.spreadsheet_id)
        return suggest_mappings(fields, headers)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> GoogleSheetsClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
