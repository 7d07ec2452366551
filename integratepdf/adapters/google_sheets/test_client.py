"""
Tests for Google Sheets Client adapter.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

from integratepdf.config.errors import ConfigurationError, ErrorCode, IntegrationError
from integratepdf.domains.mapping import ExtractedField

from .client import GoogleSheetsClient, OAuthTokenRefresher, format_field_key_as_header
from .models import GoogleSheetsConfig, Spreadsheet

TOKEN_URL = "https://oauth2.googleapis.com/token"


def _spreadsheet(spreadsheet_id: str = "s1", *titles: str) -> dict[str, Any]:
    return {
        "spreadsheetId": spreadsheet_id,
        "properties": {"title": "Invoices"},
        "spreadsheetUrl": f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit",
        "sheets": [
            {"properties": {"sheetId": i, "title": t, "index": i, "gridProperties": {"rowCount": 100}}}
            for i, t in enumerate(titles or ("Sheet1",))
        ],
    }


class FakeGoogle:
    """Serves canned Sheets and token endpoint responses."""

    def __init__(self, existing_rows: list[list[str]] | None = None, titles: tuple[str, ...] = ("Sheet1",)) -> None:
        self.existing_rows = existing_rows or []
        self.titles = titles
        self.valid_token = "good-token"
        self.requests: list[httpx.Request] = []
        self.refresh_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url.startswith(TOKEN_URL):
            if self.refresh_status != 200:
                return httpx.Response(self.refresh_status, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": self.valid_token, "expires_in": 3599})

        if request.headers.get("Authorization") != f"Bearer {self.valid_token}":
            return httpx.Response(401, json={"error": {"code": 401, "message": "Invalid Credentials"}})

        path = request.url.path
        if request.method == "POST" and path == "/v4/spreadsheets":
            return httpx.Response(200, json=_spreadsheet("new-1", *self.titles))
        if request.method == "POST" and path.endswith(":append"):
            rows = json.loads(request.content)["values"]
            return httpx.Response(
                200,
                json={
                    "spreadsheetId": path.split("/")[3],
                    "updates": {"updatedRange": "Sheet1!A2:C2", "updatedRows": len(rows)},
                },
            )
        if "/values/" in path:
            return httpx.Response(200, json={"range": "Sheet1!A1:Z1000", "values": self.existing_rows})
        if request.method == "GET" and path.startswith("/v4/spreadsheets/"):
            spreadsheet_id = path.rsplit("/", 1)[-1]
            if spreadsheet_id == "missing":
                return httpx.Response(404, json={"error": {"code": 404, "message": "Requested entity was not found."}})
            return httpx.Response(200, json=_spreadsheet(spreadsheet_id, *self.titles))
        return httpx.Response(400, json={"error": {"message": "unexpected"}})

    def appended(self) -> list[list[list[str]]]:
        return [
            json.loads(r.content)["values"]
            for r in self.requests
            if r.method == "POST" and r.url.path.endswith(":append")
        ]


def _client(fake: FakeGoogle, **config: Any) -> GoogleSheetsClient:
    transport = httpx.MockTransport(fake)
    config.setdefault("access_token", "good-token")
    return GoogleSheetsClient(
        GoogleSheetsConfig(**config),
        refresher=OAuthTokenRefresher("cid", "csecret", TOKEN_URL, transport=transport),
        transport=transport,
    )


def _fields() -> list[ExtractedField]:
    return [
        ExtractedField(field_key="invoice_number", field_value="INV-1"),
        ExtractedField(field_key="total_amount", field_value="99.50"),
        ExtractedField(field_key="invoice_date", field_value="2024-02-15"),
    ]


# --- Helpers ---


@pytest.mark.parametrize(
    ("key", "expected"),
    [("invoice_number", "Invoice Number"), ("TOTAL", "Total"), ("vendor", "Vendor")],
)
def test_format_field_key_as_header(key: str, expected: str) -> None:
    """Test snake_case keys become Title Case headers."""
    assert format_field_key_as_header(key) == expected


def test_spreadsheet_find_sheet_falls_back_to_first() -> None:
    """Test sheet lookup by title with first-sheet fallback."""
    spreadsheet = Spreadsheet.from_api(_spreadsheet("s1", "Data", "Archive"))
    assert spreadsheet.find_sheet("Archive").title == "Archive"  # type: ignore[union-attr]
    assert spreadsheet.find_sheet("Sheet1").title == "Data"  # type: ignore[union-attr]


def test_build_row_with_mapping_writes_only_mapped() -> None:
    """Test unmapped fields are left out when a mapping is given."""
    headers, values = GoogleSheetsClient.build_row(_fields(), {"total_amount": "Amount"})
    assert headers == ["Amount"]
    assert values == ["99.50"]


# --- Push ---


async def test_push_to_empty_sheet_writes_headers() -> None:
    """Test headers plus one data row on the first push."""
    fake = FakeGoogle()
    result = await _client(fake, spreadsheet_id="s1").push_extracted_data(_fields())

    assert fake.appended() == [
        [
            ["Invoice Number", "Total Amount", "Invoice Date"],
            ["INV-1", "99.50", "2024-02-15"],
        ]
    ]
    assert result.spreadsheet_id == "s1"
    assert result.sheet_name == "Sheet1"
    assert result.external_id == "s1:Sheet1"
    assert result.created is False
    assert result.updated_rows == 2


async def test_push_to_non_empty_sheet_skips_headers() -> None:
    """Test only the data row is appended when the sheet has content."""
    fake = FakeGoogle(existing_rows=[["Invoice Number", "Total Amount", "Invoice Date"]])
    await _client(fake, spreadsheet_id="s1").push_extracted_data(_fields())
    assert fake.appended() == [[["INV-1", "99.50", "2024-02-15"]]]


async def test_push_uses_user_entered_append() -> None:
    """Test the append call parameters."""
    fake = FakeGoogle()
    await _client(fake, spreadsheet_id="s1").push_extracted_data(_fields())
    append = next(r for r in fake.requests if r.url.path.endswith(":append"))
    assert append.url.path == "/v4/spreadsheets/s1/values/Sheet1!A:A:append"
    assert parse_qs(append.url.query.decode())["valueInputOption"] == ["USER_ENTERED"]


async def test_push_creates_spreadsheet_when_missing() -> None:
    """Test a spreadsheet is created and named after the document."""
    fake = FakeGoogle()
    result = await _client(fake).push_extracted_data(_fields(), document_name="invoice.pdf")

    create = next(r for r in fake.requests if r.method == "POST" and r.url.path == "/v4/spreadsheets")
    assert json.loads(create.content)["properties"]["title"].startswith("invoice.pdf - ")
    assert result.spreadsheet_id == "new-1"
    assert result.created is True
    assert result.spreadsheet_url == "https://docs.google.com/spreadsheets/d/new-1"


async def test_push_falls_back_to_first_sheet() -> None:
    """Test a missing sheet name uses the first sheet."""
    fake = FakeGoogle(titles=("Data",))
    result = await _client(fake, spreadsheet_id="s1", sheet_name="Sheet1").push_extracted_data(_fields())
    assert result.sheet_name == "Data"
    assert result.external_id == "s1:Data"


async def test_push_spreadsheet_not_found() -> None:
    """Test a 404 is classified with the Sheets flavour."""
    fake = FakeGoogle()
    with pytest.raises(IntegrationError) as exc_info:
        await _client(fake, spreadsheet_id="missing").push_extracted_data(_fields())
    assert exc_info.value.code == ErrorCode.GOOGLE_SHEETS_NOT_FOUND
    assert exc_info.value.retryable is False


# --- Token refresh ---


async def test_expired_token_refreshed_once() -> None:
    """Test a 401 triggers one refresh, then the call succeeds."""
    fake = FakeGoogle()
    client = _client(fake, access_token="expired", refresh_token="r1", spreadsheet_id="s1")

    spreadsheet = await client.get_spreadsheet("s1")

    assert spreadsheet.id == "s1"
    assert client.refreshed_access_token == "good-token"
    token_calls = [r for r in fake.requests if str(r.url).startswith(TOKEN_URL)]
    assert len(token_calls) == 1
    assert parse_qs(token_calls[0].content.decode())["grant_type"] == ["refresh_token"]


async def test_second_401_is_raised() -> None:
    """Test no refresh loop when the new token is rejected too."""
    fake = FakeGoogle()
    fake.valid_token = "never-matches"
    client = GoogleSheetsClient(
        GoogleSheetsConfig(access_token="expired", refresh_token="r1"),
        refresher=OAuthTokenRefresher(
            "cid", "csecret", TOKEN_URL, transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"access_token": "also-bad"}))
        ),
        transport=httpx.MockTransport(fake),
    )

    with pytest.raises(IntegrationError) as exc_info:
        await client.get_spreadsheet("s1")

    assert exc_info.value.code == ErrorCode.GOOGLE_SHEETS_UNAUTHORIZED
    assert len(fake.requests) == 2


async def test_failed_refresh_is_unauthorized() -> None:
    """Test a revoked refresh token classifies as unauthorized."""
    fake = FakeGoogle()
    fake.refresh_status = 400
    client = _client(fake, access_token="expired", refresh_token="revoked")

    with pytest.raises(IntegrationError) as exc_info:
        await client.get_spreadsheet("s1")
    assert exc_info.value.code == ErrorCode.GOOGLE_SHEETS_UNAUTHORIZED


async def test_401_without_refresh_token() -> None:
    """Test a 401 is raised directly when no refresh token exists."""
    fake = FakeGoogle()
    client = _client(fake, access_token="expired")
    with pytest.raises(IntegrationError) as exc_info:
        await client.get_spreadsheet("s1")
    assert exc_info.value.code == ErrorCode.GOOGLE_SHEETS_UNAUTHORIZED
    assert client.refreshed_access_token is None


async def test_refresher_requires_client_credentials() -> None:
    """Test refresh without OAuth client config fails fast."""
    with pytest.raises(ConfigurationError):
        await OAuthTokenRefresher(None, None).refresh("r1")


def _html(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="<html>proxy</html>", headers={"content-type": "text/html"})


async def test_non_json_success_body_is_classified() -> None:
    """Test an HTML page answering a Sheets call with 200 is classified."""
    client = GoogleSheetsClient(
        GoogleSheetsConfig(access_token="good-token"),
        transport=httpx.MockTransport(_html),
    )
    with pytest.raises(IntegrationError) as exc_info:
        await client.get_spreadsheet("s1")

    assert exc_info.value.code == ErrorCode.GOOGLE_SHEETS_UNKNOWN_ERROR
    assert exc_info.value.details["status"] == 200
    assert exc_info.value.retryable is True


async def test_non_json_token_response_is_classified() -> None:
    """Test an HTML page from the token endpoint is classified."""
    refresher = OAuthTokenRefresher("cid", "csecret", TOKEN_URL, transport=httpx.MockTransport(_html))
    with pytest.raises(IntegrationError) as exc_info:
        await refresher.refresh("r1")

    assert exc_info.value.code == ErrorCode.GOOGLE_SHEETS_UNKNOWN_ERROR


# --- Connection / preview ---


async def test_connection() -> None:
    """Test connection check against the configured spreadsheet."""
    fake = FakeGoogle()
    assert await _client(fake, spreadsheet_id="s1").test_connection() is True
    assert await _client(fake, spreadsheet_id="missing").test_connection() is False
    assert await _client(fake).test_connection() is False


async def test_suggest_mappings_from_headers() -> None:
    """Test mapping preview reads the header row."""
    fake = FakeGoogle(existing_rows=[["Invoice #", "Amount", "Date"]])
    mapping = await _client(fake, spreadsheet_id="s1").suggest_mappings(_fields())
    assert mapping == {
        "invoice_number": "Invoice #",
        "total_amount": "Amount",
        "invoice_date": "Date",
    }
