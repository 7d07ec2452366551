"""
API Middleware - Request/response processing.

Provides:
- Request context (request ID, target integration, operation)
- Response latency logging per integration operation
- Error handling with taxonomy codes
- Rate limiting, with a separate push budget per integration
"""

from __future__ import annotations

import logging
import math
import re
import time
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from integratepdf.config.errors import ErrorCode, IntegratePDFError, IntegrationError
from integratepdf.domains.errors import get_retry_delay

logger = logging.getLogger(__name__)

# /api/integrations/{id}[/{operation}...]
_INTEGRATION_PATH = re.compile(r"^/api/integrations/(\d+)(?:/([a-z_]+))?")

_UNLIMITED_PATHS = frozenset({"/health", "/api"})


def integration_context(path: str) -> tuple[int | None, str | None]:
    """Integration id and operation named by a request path."""
    match = _INTEGRATION_PATH.match(path)
    if match is None:
        return None, None
    return int(match.group(1)), match.group(2)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach request ID and target integration for logs and responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        integration_id, operation = integration_context(request.url.path)

        request.state.request_id = request_id
        request.state.integration_id = integration_id
        request.state.operation = operation

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class LatencyMiddleware(BaseHTTPMiddleware):
    """Log latency of each request with the integration it touched."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.2f}"

        integration_id = getattr(request.state, "integration_id", None)
        if integration_id is None:
            logger.info(
                "%s %s status=%d latency_ms=%.2f request_id=%s",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                getattr(request.state, "request_id", "unknown"),
            )
        else:
            logger.info(
                "%s integration=%s op=%s status=%d latency_ms=%.2f request_id=%s",
                request.method,
                integration_id,
                getattr(request.state, "operation", None) or "record",
                response.status_code,
                duration_ms,
                getattr(request.state, "request_id", "unknown"),
            )
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Convert IntegratePDFError exceptions to structured JSON responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        try:
            return await call_next(request)
        except IntegratePDFError as e:
            request_id = getattr(request.state, "request_id", "unknown")
            status = error_status(e)
            headers: dict[str, str] = {}
            if isinstance(e, IntegrationError):
                logger.warning(
                    "Destination error %s (retryable=%s) integration=%s request_id=%s: %s",
                    e.code.value,
                    e.retryable,
                    getattr(request.state, "integration_id", None),
                    request_id,
                    e.message,
                )
                if status == 429:
                    headers["Retry-After"] = str(math.ceil(get_retry_delay(0) / 1000))
            else:
                logger.error(
                    "%s: %s request_id=%s details=%s",
                    e.code.value,
                    e.message,
                    request_id,
                    e.details,
                )
            return JSONResponse(
                status_code=status,
                content={"error": e.to_dict(), "request_id": request_id},
                headers=headers,
            )
        except Exception as e:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.exception("Unhandled error: %s request_id=%s", str(e), request_id)
            return JSONResponse(
                status_code=500,
                content={
                    "error": {
                        "code": ErrorCode.INTERNAL_ERROR.value,
                        "message": "Internal server error",
                        "details": {},
                    },
                    "request_id": request_id,
                },
            )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory fixed-window rate limiting.

    Pushes are counted per client and integration against their own budget,
    so a burst of pushes to one destination does not lock the client out of
    the rest of the API. Everything else shares one budget per client.
    """

    def __init__(
        self,
        app: ASGIApp,
        requests_per_minute: int = 60,
        pushes_per_minute: int = 30,
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.pushes_per_minute = pushes_per_minute
        self.buckets: dict[tuple[str, int | None], dict[str, Any]] = defaultdict(
            lambda: {"window": 0, "tokens": 0}
        )

    def _bucket_key(self, request: Request) -> tuple[tuple[str, int | None], int]:
        client_ip = request.client.host if request.client else "unknown"
        integration_id, operation = integration_context(request.url.path)
        if request.method == "POST" and operation == "push":
            return (client_ip, integration_id), self.pushes_per_minute
        return (client_ip, None), self.requests_per_minute

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path in _UNLIMITED_PATHS:
            return await call_next(request)

        key, limit = self._bucket_key(request)
        window = int(time.time() // 60)
        bucket = self.buckets[key]
        if bucket["window"] != window:
            bucket["window"] = window
            bucket["tokens"] = limit

        if bucket["tokens"] <= 0:
            retry_after = 60 - int(time.time() % 60)
            # runs before the request context is attached
            request_id = request.headers.get("X-Request-ID", "unknown")
            logger.warning(
                "Rate limit exceeded for %s integration=%s request_id=%s",
                key[0],
                key[1],
                request_id,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": {
                        "code": ErrorCode.SECURITY_RATE_LIMITED.value,
                        "message": f"Too many requests. Please retry after {retry_after} seconds.",
                        "details": {"retry_after": retry_after, "integration_id": key[1]},
                    },
                    "request_id": request_id,
                },
                headers={"Retry-After": str(retry_after)},
            )

        bucket["tokens"] -= 1
        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(bucket["tokens"])
        response.headers["X-RateLimit-Limit"] = str(limit)
        return response


_STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.DESTINATION_MISCONFIGURED: 400,
    ErrorCode.CREDENTIALS_INVALID: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.DESTINATION_NOT_FOUND: 404,
    ErrorCode.SECURITY_RATE_LIMITED: 429,
    ErrorCode.NOTION_RATE_LIMITED: 429,
    ErrorCode.GOOGLE_SHEETS_RATE_LIMITED: 429,
    ErrorCode.DECRYPTION_FAILED: 500,
    ErrorCode.DESTINATION_UNSUPPORTED: 501,
    ErrorCode.CONFIGURATION_ERROR: 503,
    ErrorCode.STORAGE_FAILED: 503,
    ErrorCode.REQUEST_TIMEOUT: 504,
}


def error_status(error: IntegratePDFError) -> int:
    """Map an error to an HTTP status; other destination failures are 502."""
    status = _STATUS_BY_CODE.get(error.code)
    if status is not None:
        return status
    if isinstance(error, IntegrationError):
        return 502
    return 500
