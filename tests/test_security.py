"""
tests/test_security.py — Unit tests for constant-time compare and input hygiene
"""
from __future__ import annotations

import hmac
from unittest.mock import patch

from blogsite.core.security import is_valid_url, safe_href, sanitize_markdown, secure_compare


def test_secure_compare_equal_strings():
    for value in ("", "a", "s3cret-value", "ünïcødé"):
        assert secure_compare(value, value) is True


def test_secure_compare_length_mismatch():
    assert secure_compare("abc", "abcd") is False


def test_secure_compare_same_length_different_content():
    assert secure_compare("abcd", "abce") is False


def test_secure_compare_rejects_non_strings():
    assert secure_compare(None, "x") is False
    assert secure_compare("x", 1) is False


def test_secure_compare_uses_compare_digest_for_equal_lengths():
    with patch("blogsite.core.security.hmac.compare_digest", wraps=hmac.compare_digest) as digest:
        assert secure_compare("token-a", "token-b") is False
    digest.assert_called_once_with(b"token-a", b"token-b")


def test_sanitize_strips_script_tags():
    cleaned = sanitize_markdown("Hello <script>alert(1)</script>world")
    assert "script" not in cleaned
    assert cleaned == "Hello world"


def test_sanitize_strips_event_handlers():
    cleaned = sanitize_markdown('<img src="x" onerror="alert(1)">')
    assert "onerror" not in cleaned


def test_sanitize_neutralises_javascript_and_data_links():
    cleaned = sanitize_markdown("[click](javascript:void) and [d](data:text/html,hi)")
    assert cleaned == "[click](#) and [d](#)"


def test_sanitize_non_string_is_empty():
    assert sanitize_markdown(None) == ""
    assert sanitize_markdown(42) == ""


def test_is_valid_url():
    assert is_valid_url("https://example.com/a") is True
    assert is_valid_url("http://example.com") is True
    assert is_valid_url("ftp://example.com") is False
    assert is_valid_url("javascript:alert(1)") is False
    assert is_valid_url("https://") is False


def test_safe_href():
    assert safe_href("https://example.com") == "https://example.com"
    assert safe_href("/posts/hello") == "/posts/hello"
    assert safe_href("#section") == "#section"
    assert safe_href("mailto:me@example.com") == "mailto:me@example.com"
    assert safe_href("//evil.example.com") is None
    assert safe_href("javascript:alert(1)") is None
    assert safe_href("data:text/html,hi") is None
    assert safe_href(None) is None
