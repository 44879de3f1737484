"""
blogsite/core/security.py — Constant-time comparison and input hygiene
"""
from __future__ import annotations

import hmac
import re
from typing import Any, Optional
from urllib.parse import urlparse

MAX_MARKDOWN_LENGTH = 10 * 1024 * 1024

_SCRIPT_TAG_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_JS_LINK_RE = re.compile(r"\[([^\]]+)\]\(javascript:[^)]+\)", re.IGNORECASE)
_DATA_LINK_RE = re.compile(r"\[([^\]]+)\]\(data:[^)]+\)", re.IGNORECASE)


def secure_compare(a: str, b: str) -> bool:
    """
    Constant-time string comparison for secrets, API keys and signatures.
    A length mismatch returns False immediately; secret lengths are not
    treated as sensitive.
    """
    if not isinstance(a, str) or not isinstance(b, str):
        return False
    a_bytes = a.encode("utf-8")
    b_bytes = b.encode("utf-8")
    if len(a_bytes) != len(b_bytes):
        return False
    return hmac.compare_digest(a_bytes, b_bytes)


def sanitize_markdown(markdown: Any) -> str:
    """
    Strip script tags, inline event handlers and javascript:/data: link
    targets from markdown before conversion. Input beyond 10 MiB is cut.
    """
    if not markdown or not isinstance(markdown, str):
        return ""

    sanitized = _SCRIPT_TAG_RE.sub("", markdown)
    sanitized = _EVENT_HANDLER_RE.sub("", sanitized)
    sanitized = _JS_LINK_RE.sub(r"[\1](#)", sanitized)
    sanitized = _DATA_LINK_RE.sub(r"[\1](#)", sanitized)

    if len(sanitized) > MAX_MARKDOWN_LENGTH:
        sanitized = sanitized[:MAX_MARKDOWN_LENGTH]
    return sanitized


def is_valid_url(url: Any) -> bool:
    """Only absolute http(s) URLs are accepted as link targets."""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def safe_href(href: Any) -> Optional[str]:
    """
    Link targets kept as link marks: absolute http(s), site-relative paths,
    fragments and mailto:. Anything else (javascript:, data:, ...) is refused.
    """
    if not href or not isinstance(href, str):
        return None
    href = href.strip()
    if is_valid_url(href):
        return href
    if href.startswith(("/", "#")) and not href.startswith("//"):
        return href
    if href.lower().startswith("mailto:") and len(href) > len("mailto:"):
        return href
    return None
