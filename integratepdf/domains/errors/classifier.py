"""
Error Classifier - Maps raw destination failures to IntegrationError.

Every failure that crosses an adapter boundary goes through `classify()`,
which yields one entry of a closed taxonomy carrying user-facing
suggestions and a retryable flag. The backoff helpers are consulted by
the push orchestrator's retry loop.
"""

from __future__ import annotations

import logging
import random
from enum import Enum
from typing import Any

import httpx

from integratepdf.config import (
    ConfigurationError,
    DecryptionError,
    ErrorCode,
    IntegrationError,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ErrorSource",
    "classify",
    "classify_status",
    "unsupported_destination",
    "destination_not_found",
    "invalid_response",
    "get_retry_delay",
    "should_retry",
    "format_error_for_user",
    "log_error",
    "BASE_DELAY_MS",
    "MAX_DELAY_MS",
    "MAX_RETRIES",
]

BASE_DELAY_MS = 1000
MAX_DELAY_MS = 30000
MAX_RETRIES = 3


class ErrorSource(str, Enum):
    """Destination flavour used to pick the code family."""

    NOTION = "notion"
    GOOGLE_SHEETS = "google_sheets"
    GENERIC = "generic"


# status class -> (code, message, suggestions, retryable)
_NOTION_TABLE: dict[str, tuple[ErrorCode, str, list[str], bool]] = {
    "400": (
        ErrorCode.NOTION_BAD_REQUEST,
        "Invalid request to Notion API",
        [
            "Check that all required fields are provided",
            "Verify that field values match the expected data types",
            "Ensure database ID is correctly formatted",
        ],
        False,
    ),
    "401": (
        ErrorCode.NOTION_UNAUTHORIZED,
        "Authentication failed with Notion",
        [
            'Verify your API key is correct and starts with "secret_" or "ntn_"',
            "Check that your integration is properly configured in Notion",
            "Ensure the API key has not expired",
        ],
        False,
    ),
    "403": (
        ErrorCode.NOTION_FORBIDDEN,
        "Permission denied to access Notion resource",
        [
            "Share the database with your integration in Notion",
            "Check that your integration has the required permissions",
            "Verify the database exists and is accessible",
        ],
        False,
    ),
    "404": (
        ErrorCode.NOTION_NOT_FOUND,
        "Notion resource not found",
        [
            "Check that the database ID is correct",
            "Verify the database has not been deleted",
            "Ensure the database is shared with your integration",
        ],
        False,
    ),
    "409": (
        ErrorCode.NOTION_CONFLICT,
        "Conflict with existing Notion data",
        [
            "Check for duplicate entries",
            "Verify unique constraints are not violated",
            "Review the data being inserted",
        ],
        True,
    ),
    "429": (
        ErrorCode.NOTION_RATE_LIMITED,
        "Rate limit exceeded for Notion API",
        [
            "Wait before retrying the request",
            "Reduce the frequency of API calls",
        ],
        True,
    ),
    "5xx": (
        ErrorCode.NOTION_SERVER_ERROR,
        "Notion server error",
        [
            "Try again in a few moments",
            "Check the Notion status page for service issues",
            "Contact support if the problem persists",
        ],
        True,
    ),
    "other": (
        ErrorCode.NOTION_UNKNOWN_ERROR,
        "Notion API error",
        [
            "Check the Notion API documentation",
            "Verify your request format",
            "Contact support if the issue persists",
        ],
        False,
    ),
}

_SHEETS_TABLE: dict[str, tuple[ErrorCode, str, list[str], bool]] = {
    "400": (
        ErrorCode.GOOGLE_SHEETS_BAD_REQUEST,
        "Invalid request to Google Sheets API",
        [
            "Check that the sheet name exists in the spreadsheet",
            "Verify the range is correctly formatted",
            "Ensure the spreadsheet ID is correct",
        ],
        False,
    ),
    "401": (
        ErrorCode.GOOGLE_SHEETS_UNAUTHORIZED,
        "Authentication failed with Google",
        [
            "Reconnect your Google account",
            "Check that access to Google Sheets has not been revoked",
        ],
        False,
    ),
    "403": (
        ErrorCode.GOOGLE_SHEETS_FORBIDDEN,
        "Permission denied to access the spreadsheet",
        [
            "Make sure the connected Google account can edit the spreadsheet",
            "Ask the spreadsheet owner to share it with you",
            "Reconnect and grant the Google Sheets permission",
        ],
        False,
    ),
    "404": (
        ErrorCode.GOOGLE_SHEETS_NOT_FOUND,
        "Spreadsheet not found",
        [
            "Check that the spreadsheet ID is correct",
            "Verify the spreadsheet has not been deleted",
            "Leave the spreadsheet ID empty to create a new spreadsheet",
        ],
        False,
    ),
    "409": (
        ErrorCode.GOOGLE_SHEETS_CONFLICT,
        "Conflicting change to the spreadsheet",
        [
            "Try again in a few moments",
            "Avoid editing the same range while pushing",
        ],
        True,
    ),
    "429": (
        ErrorCode.GOOGLE_SHEETS_RATE_LIMITED,
        "Rate limit exceeded for Google Sheets API",
        [
            "Wait before retrying the request",
            "Reduce the frequency of pushes",
        ],
        True,
    ),
    "5xx": (
        ErrorCode.GOOGLE_SHEETS_SERVER_ERROR,
        "Google Sheets server error",
        [
            "Try again in a few moments",
            "Check the Google Workspace status dashboard",
            "Contact support if the problem persists",
        ],
        True,
    ),
    "other": (
        ErrorCode.GOOGLE_SHEETS_UNKNOWN_ERROR,
        "Google Sheets API error",
        [
            "Check the Google Sheets API documentation",
            "Contact support if the issue persists",
        ],
        False,
    ),
}


def _status_key(status: int) -> str:
    if status in (400, 401, 403, 404, 409, 429):
        return str(status)
    if 500 <= status < 600:
        return "5xx"
    return "other"


def classify_status(
    status: int,
    message: str | None = None,
    source: ErrorSource = ErrorSource.NOTION,
) -> IntegrationError:
    """
    Classify an HTTP error status.

    Args:
        status: HTTP status code returned by the destination
        message: Error message from the response body
        source: Destination flavour

    Returns:
        Classified IntegrationError
    """
    table = _SHEETS_TABLE if source == ErrorSource.GOOGLE_SHEETS else _NOTION_TABLE
    key = _status_key(status)
    code, text, suggestions, retryable = table[key]
    if key == "other":
        text = f"{text}: {status}"

    return IntegrationError(
        code=code,
        message=text,
        details={"status": status, "message": message},
        suggestions=suggestions,
        retryable=retryable,
    )


def _response_message(response: httpx.Response) -> str:
    """Best-effort error message from a destination error body."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or response.text
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message", response.reason_phrase))
        if isinstance(error, str):
            return body.get("error_description", error)
        if "message" in body:
            return str(body["message"])
    return response.reason_phrase


def classify(
    error: BaseException,
    source: ErrorSource = ErrorSource.GENERIC,
) -> IntegrationError:
    """
    Classify any failure raised while talking to a destination.

    Args:
        error: Raw exception
        source: Destination flavour

    Returns:
        IntegrationError (the input itself if it is already classified)
    """
    if isinstance(error, IntegrationError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        status_source = ErrorSource.NOTION if source == ErrorSource.GENERIC else source
        return classify_status(
            error.response.status_code,
            _response_message(error.response),
            status_source,
        )

    if isinstance(error, httpx.TimeoutException):
        return IntegrationError(
            code=ErrorCode.REQUEST_TIMEOUT,
            message="Request timed out",
            details=str(error),
            suggestions=[
                "Try again with a smaller data set",
                "Check your internet connection speed",
                "Contact support if timeouts persist",
            ],
            retryable=True,
        )

    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return IntegrationError(
            code=ErrorCode.NETWORK_ERROR,
            message="Network connection failed",
            details=str(error),
            suggestions=[
                "Check your internet connection",
                "Verify that the destination API is accessible",
                "Try again in a few moments",
            ],
            retryable=True,
        )

    if isinstance(error, DecryptionError):
        return IntegrationError(
            code=ErrorCode.CREDENTIALS_INVALID,
            message="Stored credentials could not be decrypted",
            details=error.message,
            suggestions=[
                "Reconnect the integration to store fresh credentials",
                "Check that ENCRYPTION_KEY has not changed since the integration was connected",
            ],
            retryable=False,
        )

    if isinstance(error, ConfigurationError):
        return IntegrationError(
            code=ErrorCode.DESTINATION_MISCONFIGURED,
            message=error.message,
            details=error.details,
            suggestions=[
                "Open the integration settings and fill in the required fields",
                "Check the server configuration",
            ],
            retryable=False,
        )

    return IntegrationError(
        code=ErrorCode.INTEGRATION_ERROR,
        message=str(error) or "An unexpected error occurred",
        details=type(error).__name__,
        suggestions=[
            "Try the operation again",
            "Check your integration configuration",
            "Contact support if the problem persists",
        ],
        retryable=True,
    )


def invalid_response(
    response: httpx.Response,
    source: ErrorSource = ErrorSource.NOTION,
) -> IntegrationError:
    """
    Classify a successful status whose body is not JSON.

    Usually a proxy or captive portal answering in the destination's place.
    """
    table = _SHEETS_TABLE if source == ErrorSource.GOOGLE_SHEETS else _NOTION_TABLE
    code, text, _, _ = table["other"]
    return IntegrationError(
        code=code,
        message=f"{text}: unreadable response",
        details={
            "status": response.status_code,
            "content_type": response.headers.get("content-type"),
        },
        suggestions=[
            "Check for a proxy or firewall between this server and the destination API",
            "Try again in a few moments",
        ],
        retryable=True,
    )


def destination_not_found(destination_id: int) -> IntegrationError:
    """Error for a destination id with no stored integration."""
    return IntegrationError(
        code=ErrorCode.DESTINATION_NOT_FOUND,
        message=f"Integration {destination_id} not found",
        details={"integration_id": destination_id},
        suggestions=[
            "Check the integration ID",
            "Reconnect the destination if it was deleted",
        ],
        retryable=False,
    )


def unsupported_destination(integration_type: str) -> IntegrationError:
    """Error for destination types that are listed but not implemented."""
    return IntegrationError(
        code=ErrorCode.DESTINATION_UNSUPPORTED,
        message=f"{integration_type} integration is not yet implemented",
        details={"integration_type": integration_type},
        suggestions=[
            "Use the Notion or Google Sheets integration for now",
        ],
        retryable=False,
    )


def get_retry_delay(attempt: int) -> float:
    """
    Exponential backoff with up to 10% jitter.

    Args:
        attempt: Zero-based retry attempt

    Returns:
        Delay in milliseconds
    """
    delay = min(BASE_DELAY_MS * (2**attempt), MAX_DELAY_MS)
    jitter = random.random() * 0.1 * delay
    return min(delay + jitter, MAX_DELAY_MS)


def should_retry(error: IntegrationError, attempt: int) -> bool:
    """Whether a failed call may be attempted again."""
    return error.retryable and attempt < MAX_RETRIES


def format_error_for_user(error: IntegrationError) -> str:
    """Render message and suggestions for display."""
    message = error.message
    if error.suggestions:
        message += "\n\nSuggestions:\n"
        message += "\n".join(f"• {s}" for s in error.suggestions)
    return message


def log_error(error: IntegrationError, context: dict[str, Any] | None = None) -> None:
    """Log a classified error with its context."""
    logger.error(
        "Integration error: code=%s message=%s retryable=%s details=%s context=%s",
        error.code.value,
        error.message,
        error.retryable,
        error.details,
        context or {},
    )
