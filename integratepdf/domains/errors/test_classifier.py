"""
Tests for the error classifier and retry policy.
"""

from __future__ import annotations

import httpx
import pytest

from integratepdf.config import (
    ConfigurationError,
    DecryptionError,
    ErrorCode,
    IntegrationError,
)

from .classifier import (
    MAX_DELAY_MS,
    ErrorSource,
    classify,
    classify_status,
    format_error_for_user,
    get_retry_delay,
    should_retry,
    unsupported_destination,
)


def _status_error(status: int, body: dict | None = None) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.notion.com/v1/pages")
    response = httpx.Response(status, json=body or {}, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


# --- Status classification ---


@pytest.mark.parametrize(
    ("status", "code", "retryable"),
    [
        (400, ErrorCode.NOTION_BAD_REQUEST, False),
        (401, ErrorCode.NOTION_UNAUTHORIZED, False),
        (403, ErrorCode.NOTION_FORBIDDEN, False),
        (404, ErrorCode.NOTION_NOT_FOUND, False),
        (409, ErrorCode.NOTION_CONFLICT, True),
        (429, ErrorCode.NOTION_RATE_LIMITED, True),
        (500, ErrorCode.NOTION_SERVER_ERROR, True),
        (503, ErrorCode.NOTION_SERVER_ERROR, True),
        (507, ErrorCode.NOTION_SERVER_ERROR, True),
        (418, ErrorCode.NOTION_UNKNOWN_ERROR, False),
    ],
)
def test_classify_notion_status(status: int, code: ErrorCode, retryable: bool) -> None:
    """Test each Notion status maps to its taxonomy entry."""
    error = classify_status(status, "boom", ErrorSource.NOTION)
    assert error.code == code
    assert error.retryable is retryable
    assert error.suggestions
    assert error.details == {"status": status, "message": "boom"}


@pytest.mark.parametrize(
    ("status", "code", "retryable"),
    [
        (400, ErrorCode.GOOGLE_SHEETS_BAD_REQUEST, False),
        (401, ErrorCode.GOOGLE_SHEETS_UNAUTHORIZED, False),
        (403, ErrorCode.GOOGLE_SHEETS_FORBIDDEN, False),
        (404, ErrorCode.GOOGLE_SHEETS_NOT_FOUND, False),
        (409, ErrorCode.GOOGLE_SHEETS_CONFLICT, True),
        (429, ErrorCode.GOOGLE_SHEETS_RATE_LIMITED, True),
        (502, ErrorCode.GOOGLE_SHEETS_SERVER_ERROR, True),
    ],
)
def test_classify_sheets_status(status: int, code: ErrorCode, retryable: bool) -> None:
    """Test Google Sheets statuses use the Sheets code family."""
    error = classify_status(status, None, ErrorSource.GOOGLE_SHEETS)
    assert error.code == code
    assert error.retryable is retryable


def test_classify_http_status_error_reads_notion_message() -> None:
    """Test the Notion error body message is kept in details."""
    error = classify(
        _status_error(429, {"object": "error", "message": "Slow down"}),
        ErrorSource.NOTION,
    )
    assert error.code == ErrorCode.NOTION_RATE_LIMITED
    assert error.retryable is True
    assert error.details["message"] == "Slow down"


def test_classify_http_status_error_reads_google_message() -> None:
    """Test the Google error envelope message is kept in details."""
    error = classify(
        _status_error(401, {"error": {"code": 401, "message": "Invalid Credentials"}}),
        ErrorSource.GOOGLE_SHEETS,
    )
    assert error.code == ErrorCode.GOOGLE_SHEETS_UNAUTHORIZED
    assert error.retryable is False
    assert error.details["message"] == "Invalid Credentials"


# --- Transport and local failures ---


def test_classify_timeout() -> None:
    """Test timeouts are retryable REQUEST_TIMEOUT."""
    error = classify(httpx.ReadTimeout("timed out"), ErrorSource.NOTION)
    assert error.code == ErrorCode.REQUEST_TIMEOUT
    assert error.retryable is True


def test_classify_connection_refused() -> None:
    """Test connection failures are retryable NETWORK_ERROR."""
    error = classify(httpx.ConnectError("refused"), ErrorSource.GOOGLE_SHEETS)
    assert error.code == ErrorCode.NETWORK_ERROR
    assert error.retryable is True

    error = classify(ConnectionRefusedError("refused"))
    assert error.code == ErrorCode.NETWORK_ERROR


def test_classify_decryption_error() -> None:
    """Test undecryptable credentials are not retried."""
    error = classify(DecryptionError("bad"))
    assert error.code == ErrorCode.CREDENTIALS_INVALID
    assert error.retryable is False


def test_classify_configuration_error() -> None:
    """Test missing configuration is not retried."""
    error = classify(ConfigurationError("Notion API key and database ID are required"))
    assert error.code == ErrorCode.DESTINATION_MISCONFIGURED
    assert error.message == "Notion API key and database ID are required"
    assert error.retryable is False


def test_classify_unknown_error_fails_open() -> None:
    """Test unrecognized errors are generic and retryable."""
    error = classify(RuntimeError("something odd"))
    assert error.code == ErrorCode.INTEGRATION_ERROR
    assert error.retryable is True
    assert error.message == "something odd"


def test_classify_passthrough() -> None:
    """Test an already classified error is returned unchanged."""
    original = classify_status(404)
    assert classify(original) is original


def test_unsupported_destination() -> None:
    """Test unimplemented destination types."""
    error = unsupported_destination("airtable")
    assert error.code == ErrorCode.DESTINATION_UNSUPPORTED
    assert "airtable" in error.message
    assert error.retryable is False


# --- Retry policy ---


def test_retry_delay_increases_and_is_capped() -> None:
    """Test backoff grows per attempt and never exceeds the cap."""
    delays = [get_retry_delay(attempt) for attempt in range(3)]
    assert delays[0] < delays[1] < delays[2]
    assert 1000 <= delays[0] <= 1100
    assert 2000 <= delays[1] <= 2200
    assert 4000 <= delays[2] <= 4400

    for attempt in range(5, 10):
        assert get_retry_delay(attempt) <= MAX_DELAY_MS


def test_should_retry() -> None:
    """Test retry is allowed only for retryable errors below the limit."""
    rate_limited = classify_status(429)
    unauthorized = classify_status(401)

    assert should_retry(rate_limited, 0)
    assert should_retry(rate_limited, 2)
    assert not should_retry(rate_limited, 3)
    assert not should_retry(unauthorized, 0)


def test_format_error_for_user() -> None:
    """Test suggestions are listed under the message."""
    error = IntegrationError(
        ErrorCode.NOTION_NOT_FOUND,
        "Notion resource not found",
        suggestions=["Check the ID"],
    )
    text = format_error_for_user(error)
    assert text.startswith("Notion resource not found")
    assert "Suggestions:" in text
    assert "• Check the ID" in text


def test_to_dict() -> None:
    """Test the serialized form carries suggestions and retryable."""
    data = classify_status(429).to_dict()
    assert data["code"] == "NOTION_RATE_LIMITED"
    assert data["retryable"] is True
    assert isinstance(data["suggestions"], list)
