"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from integratepdf.config.errors import ErrorCode, IntegratePDFError

    raise ConfigurationError("ENCRYPTION_KEY is not set")

IntegrationError instances are produced by the error classifier
(integratepdf.domains.errors) so the destination taxonomy stays closed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Notion destination errors
    NOTION_BAD_REQUEST = "NOTION_BAD_REQUEST"
    NOTION_UNAUTHORIZED = "NOTION_UNAUTHORIZED"
    NOTION_FORBIDDEN = "NOTION_FORBIDDEN"
    NOTION_NOT_FOUND = "NOTION_NOT_FOUND"
    NOTION_CONFLICT = "NOTION_CONFLICT"
    NOTION_RATE_LIMITED = "NOTION_RATE_LIMITED"
    NOTION_SERVER_ERROR = "NOTION_SERVER_ERROR"
    NOTION_UNKNOWN_ERROR = "NOTION_UNKNOWN_ERROR"

    # Google Sheets destination errors
    GOOGLE_SHEETS_BAD_REQUEST = "GOOGLE_SHEETS_BAD_REQUEST"
    GOOGLE_SHEETS_UNAUTHORIZED = "GOOGLE_SHEETS_UNAUTHORIZED"
    GOOGLE_SHEETS_FORBIDDEN = "GOOGLE_SHEETS_FORBIDDEN"
    GOOGLE_SHEETS_NOT_FOUND = "GOOGLE_SHEETS_NOT_FOUND"
    GOOGLE_SHEETS_CONFLICT = "GOOGLE_SHEETS_CONFLICT"
    GOOGLE_SHEETS_RATE_LIMITED = "GOOGLE_SHEETS_RATE_LIMITED"
    GOOGLE_SHEETS_SERVER_ERROR = "GOOGLE_SHEETS_SERVER_ERROR"
    GOOGLE_SHEETS_UNKNOWN_ERROR = "GOOGLE_SHEETS_UNKNOWN_ERROR"

    # Transport errors
    NETWORK_ERROR = "NETWORK_ERROR"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"

    # Destination setup errors
    CREDENTIALS_INVALID = "CREDENTIALS_INVALID"
    DESTINATION_MISCONFIGURED = "DESTINATION_MISCONFIGURED"
    DESTINATION_UNSUPPORTED = "DESTINATION_UNSUPPORTED"
    DESTINATION_NOT_FOUND = "DESTINATION_NOT_FOUND"

    # Generic catch-all for destination failures
    INTEGRATION_ERROR = "INTEGRATION_ERROR"

    # Application errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    DECRYPTION_FAILED = "DECRYPTION_FAILED"
    STORAGE_FAILED = "STORAGE_FAILED"
    SECURITY_RATE_LIMITED = "SECURITY_RATE_LIMITED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class IntegratePDFError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Any = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class IntegrationError(IntegratePDFError):
    """
    Classified destination failure.

    Carries user-facing suggestions and whether the failed call may be retried.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Any = None,
        suggestions: list[str] | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(code, message, details)
        self.suggestions = list(suggestions or [])
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["suggestions"] = self.suggestions
        data["retryable"] = self.retryable
        return data


class ConfigurationError(IntegratePDFError):
    """Missing or invalid configuration (fatal for the affected code path)."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(ErrorCode.CONFIGURATION_ERROR, message, details)


class DecryptionError(IntegratePDFError):
    """Stored secret could not be decrypted (wrong key, malformed or tampered)."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(ErrorCode.DECRYPTION_FAILED, message, details)


class StorageError(IntegratePDFError):
    """Integration store errors."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(ErrorCode.STORAGE_FAILED, message, details)


class NotFoundError(IntegratePDFError):
    """Requested destination or record does not exist."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(ErrorCode.NOT_FOUND, message, details)
