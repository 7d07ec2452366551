"""
Errors Domain - Classification of destination failures and retry policy.
"""

from .classifier import (
    MAX_DELAY_MS,
    MAX_RETRIES,
    ErrorSource,
    classify,
    classify_status,
    destination_not_found,
    format_error_for_user,
    get_retry_delay,
    invalid_response,
    log_error,
    should_retry,
    unsupported_destination,
)

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
    "MAX_DELAY_MS",
    "MAX_RETRIES",
]
