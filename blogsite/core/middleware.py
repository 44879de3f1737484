"""
blogsite/core/middleware.py — Edge request gate

Runs before routing on every non-static request:
1. /api/* requests from blocked bots get a bare 403 JSON response.
2. Everything else passes through and receives the security header set,
   plus an "index, follow" robots hint on content detail paths.
Classification failures never block a request.
"""
from __future__ import annotations

import re
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from loguru import logger

from blogsite.config import get_settings
from blogsite.core.bot_detection import is_allowed_crawler, is_bot

API_PREFIX = "/api/"
INDEXABLE_PREFIXES = ("/posts/", "/category/", "/tag/")

_STATIC_PATH_RE = re.compile(
    r"^/(?:_next/static|_next/image|static/|favicon\.ico)"
    r"|\.(?:svg|png|jpg|jpeg|gif|webp|ico)$",
    re.IGNORECASE,
)

# ── Content-Security-Policy allow-list ────────────────────────────────────────
CSP_DIRECTIVES: tuple[tuple[str, str], ...] = (
    ("default-src", "'self'"),
    ("script-src", "'self' 'unsafe-eval' 'unsafe-inline' https://www.googletagmanager.com "
                   "https://pagead2.googlesyndication.com"),
    ("style-src", "'self' 'unsafe-inline'"),
    ("img-src", "'self' data: https://cdn.sanity.io https://*.sanity.io "
                "https://www.google-analytics.com https://*.googlesyndication.com"),
    ("font-src", "'self' data:"),
    ("connect-src", "'self' https://*.sanity.io https://api.openai.com "
                    "https://www.google-analytics.com https://*.google-analytics.com"),
    ("frame-src", "'self' https://tpc.googlesyndication.com https://googleads.g.doubleclick.net"),
    ("object-src", "'none'"),
    ("base-uri", "'self'"),
    ("form-action", "'self'"),
    ("frame-ancestors", "'none'"),
    ("upgrade-insecure-requests", ""),
)


def build_content_security_policy() -> str:
    return "; ".join(
        f"{name} {sources}".strip() for name, sources in CSP_DIRECTIVES
    )


SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), interest-cohort=()",
    "Content-Security-Policy": build_content_security_policy(),
}


def is_static_path(path: str) -> bool:
    return bool(_STATIC_PATH_RE.search(path))


def should_block(path: str, user_agent: str) -> bool:
    """Block non-allowed bots from the API. Errors resolve to 'not blocked'."""
    if not path.startswith(API_PREFIX):
        return False
    try:
        return is_bot(user_agent) and not is_allowed_crawler(user_agent)
    except Exception as exc:
        logger.warning(f"Bot classification failed, allowing request: {exc}")
        return False


def apply_security_headers(response: Response, path: str) -> Response:
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    if get_settings().is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    if path.startswith(INDEXABLE_PREFIXES):
        response.headers["X-Robots-Tag"] = "index, follow"
    return response


async def edge_gate(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    path = request.url.path
    if is_static_path(path):
        return await call_next(request)

    user_agent = request.headers.get("user-agent", "")
    if should_block(path, user_agent):
        return JSONResponse(
            status_code=403,
            content={"code": "FORBIDDEN", "message": "Access denied"},
        )

    response = await call_next(request)
    return apply_security_headers(response, path)
