"""
blogsite/core/auth.py — Authentication & Authorization

Admin sessions are stateless signed tokens:
    base64("<timestamp_ms>:<nonce_hex>:<hmac_sha256_hex>")
A token is valid iff its HMAC verifies under the current ADMIN_SESSION_SECRET
and it is younger than the max age (24h). There is no revocation list; rotating
the secret invalidates every outstanding session.

Configuration absence is asymmetric on purpose:
- create_admin_session() raises ConfigurationError (ops notice at login time)
- verify_admin_session() / verify_admin_password() return False (no oracle)
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets
import time
from typing import Optional

from fastapi import Cookie, Header, Response
from loguru import logger

from blogsite.config import get_settings
from blogsite.core import logging as app_logging
from blogsite.core.errors import AuthenticationError, ConfigurationError
from blogsite.core.security import secure_compare

ADMIN_SESSION_COOKIE = "admin_session"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _sign(secret: str, timestamp: str, nonce: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}:{nonce}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


# ──────────────────────────────────────────────────────────────────────────────
# Admin password
# ──────────────────────────────────────────────────────────────────────────────

def verify_admin_password(password: Optional[str]) -> bool:
    """Constant-time check against ADMIN_PASSWORD. Unset password denies all."""
    admin_password = get_settings().admin_password
    if not admin_password:
        logger.error("ADMIN_PASSWORD not configured - admin access denied")
        return False
    if not password:
        return False
    return secure_compare(password, admin_password)


# ──────────────────────────────────────────────────────────────────────────────
# Admin session tokens
# ──────────────────────────────────────────────────────────────────────────────

def create_admin_session(now_ms: Optional[int] = None) -> str:
    """Issue a signed session token. Raises ConfigurationError without a secret."""
    secret = get_settings().admin_session_secret
    if not secret:
        raise ConfigurationError("ADMIN_SESSION_SECRET not configured")

    timestamp = str(now_ms if now_ms is not None else _now_ms())
    nonce = secrets.token_hex(16)
    signature = _sign(secret, timestamp, nonce)

    raw = f"{timestamp}:{nonce}:{signature}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def verify_admin_session(token: Optional[str], now_ms: Optional[int] = None) -> bool:
    """Never raises: any decode or format problem is simply an invalid token."""
    if not token:
        return False

    secret = get_settings().admin_session_secret
    if not secret:
        logger.error("ADMIN_SESSION_SECRET not configured - session verification failed")
        return False

    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return False

    parts = decoded.split(":")
    if len(parts) != 3:
        return False
    timestamp, nonce, provided_signature = parts

    expected_signature = _sign(secret, timestamp, nonce)
    if not secure_compare(provided_signature, expected_signature):
        return False

    try:
        issued_at = int(timestamp)
    except ValueError:
        return False

    now = now_ms if now_ms is not None else _now_ms()
    max_age_ms = get_settings().admin_session_max_age_seconds * 1000
    age = now - issued_at
    return 0 <= age < max_age_ms


# ──────────────────────────────────────────────────────────────────────────────
# Cookie helpers
# ──────────────────────────────────────────────────────────────────────────────

def set_admin_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=ADMIN_SESSION_COOKIE,
        value=token,
        max_age=settings.admin_session_max_age_seconds,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def clear_admin_session_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=ADMIN_SESSION_COOKIE,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


# ──────────────────────────────────────────────────────────────────────────────
# FastAPI dependencies
# ──────────────────────────────────────────────────────────────────────────────

async def require_admin_session(
    admin_session: Optional[str] = Cookie(None, alias=ADMIN_SESSION_COOKIE),
) -> bool:
    """Guard for admin routes: a valid admin_session cookie is required."""
    if not verify_admin_session(admin_session):
        raise AuthenticationError()
    return True


async def verify_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> bool:
    """
    Validate X-API-Key for programmatic writes.
    Unconfigured server key is a 500; a missing or wrong client key is a 401.
    """
    expected = get_settings().api_key
    if not expected:
        app_logging.log_auth_event("api_key", False, "API_KEY not configured")
        raise ConfigurationError("API_KEY not configured")
    if not x_api_key or not secure_compare(x_api_key, expected):
        app_logging.log_auth_event("api_key", False, "invalid or missing key")
        raise AuthenticationError()
    return True
