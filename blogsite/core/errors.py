"""
blogsite/core/errors.py — Error taxonomy and global exception handlers

Every failure the core can report is a BlogError subclass carrying its HTTP
status and a stable machine-readable code. Handlers render them as
{"code", "message"} JSON; internal details are only attached in development.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from blogsite.config import get_settings


class BlogError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details
        self.headers = headers or {}
        super().__init__(self.message)

    def public_message(self) -> str:
        return self.message


class ConfigurationError(BlogError):
    """A required secret or key is not configured."""

    status_code = 500
    code = "CONFIGURATION_ERROR"
    default_message = "Server configuration error"

    def public_message(self) -> str:
        # The missing setting is logged server-side, never echoed.
        return self.default_message


class AuthenticationError(BlogError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class ForbiddenError(BlogError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied"


class NotFoundError(BlogError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class RateLimitExceeded(BlogError):
    status_code = 429
    code = "TOO_MANY_REQUESTS"
    default_message = "Too many requests"

    def __init__(self, retry_after: int, headers: Optional[dict[str, str]] = None,
                 message: Optional[str] = None) -> None:
        self.retry_after = retry_after
        merged = dict(headers or {})
        merged["Retry-After"] = str(retry_after)
        super().__init__(message, details={"retryAfter": retry_after}, headers=merged)


class ValidationError(BlogError):
    """Malformed or out-of-bounds request input. Safe to show to the client."""

    status_code = 400
    code = "BAD_REQUEST"
    default_message = "Invalid request"


class PayloadTooLargeError(ValidationError):
    status_code = 413
    code = "PAYLOAD_TOO_LARGE"
    default_message = "Request too large"


class ConversionError(BlogError):
    """Markdown/HTML/editor JSON could not be turned into content blocks."""

    status_code = 422
    code = "CONVERSION_FAILED"
    default_message = "Failed to convert content"


class UpstreamStoreError(BlogError):
    status_code = 500
    code = "UPSTREAM_ERROR"
    default_message = "Content store request failed"

    _FRIENDLY_MESSAGES = (
        ("not found", "The requested document was not found in the content store."),
        ("reference", "The content references a category, tag or image that does not exist."),
        ("validation", "The content store rejected the document as invalid."),
    )

    def __init__(self, message: Optional[str] = None, details: Any = None,
                 upstream_status: Optional[int] = None) -> None:
        self.upstream_status = upstream_status
        super().__init__(message, details=details)

    def public_message(self) -> str:
        return friendly_store_message(self.message)


def friendly_store_message(raw: str) -> str:
    """Map a raw content-store error to a client-safe message."""
    lowered = (raw or "").lower()
    for needle, friendly in UpstreamStoreError._FRIENDLY_MESSAGES:
        if needle in lowered:
            return friendly
    return UpstreamStoreError.default_message


# ──────────────────────────────────────────────────────────────────────────────
# Response rendering
# ──────────────────────────────────────────────────────────────────────────────

def error_payload(exc: BlogError) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "code": exc.code,
        "message": exc.public_message(),
    }
    if isinstance(exc, RateLimitExceeded):
        payload["retryAfter"] = exc.retry_after
    elif exc.details is not None and get_settings().is_development:
        payload["details"] = exc.details
    return payload


async def blog_error_handler(request: Request, exc: BlogError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            f"{exc.code} on {request.method} {request.url.path}: {exc.message}"
        )
    else:
        logger.info(
            f"{exc.code} on {request.method} {request.url.path}: {exc.message}"
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc),
        headers=exc.headers or None,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Final safety net: log the traceback, return a generic 500."""
    logger.opt(exception=exc).error(
        f"Unhandled exception during request: {request.method} {request.url.path}"
    )
    return JSONResponse(
        status_code=500,
        content={"code": "INTERNAL_ERROR", "message": "Internal server error"},
    )
