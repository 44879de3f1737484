"""
tests/test_middleware.py — Edge gate: bot blocking and security headers
"""
from __future__ import annotations

from unittest.mock import patch

from blogsite.core.middleware import (
    SECURITY_HEADERS,
    build_content_security_policy,
    is_static_path,
    should_block,
)


def test_bot_on_api_gets_bare_403(client):
    response = client.get("/api/health", headers={"User-Agent": "curl/8.4.0"})
    assert response.status_code == 403
    assert response.json() == {"code": "FORBIDDEN", "message": "Access denied"}
    assert "Content-Security-Policy" not in response.headers


def test_missing_user_agent_on_api_is_blocked(client):
    response = client.get("/api/health", headers={"User-Agent": ""})
    assert response.status_code == 403


def test_allowed_crawler_passes_api_gate(client):
    response = client.get("/api/health", headers={"User-Agent": "Googlebot/2.1"})
    assert response.status_code == 200


def test_bots_are_not_blocked_outside_api(client):
    response = client.get("/posts/hello", headers={"User-Agent": "curl/8.4.0"})
    assert response.status_code == 404


def test_security_headers_on_every_response(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    for name, value in SECURITY_HEADERS.items():
        assert response.headers[name] == value
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "X-Robots-Tag" not in response.headers


def test_robots_hint_on_content_paths(client):
    response = client.get("/posts/some-post")
    assert response.headers["X-Robots-Tag"] == "index, follow"


def test_hsts_only_in_production(client, monkeypatch):
    assert "Strict-Transport-Security" not in client.get("/api/health").headers

    from blogsite.config import get_settings
    monkeypatch.setenv("ENVIRONMENT", "production")
    get_settings.cache_clear()
    assert "Strict-Transport-Security" in client.get("/api/health").headers


def test_static_paths_skip_the_gate():
    assert is_static_path("/favicon.ico")
    assert is_static_path("/static/app.css")
    assert is_static_path("/images/cover.webp")
    assert not is_static_path("/api/health")


def test_classification_errors_do_not_block():
    with patch("blogsite.core.middleware.is_bot", side_effect=RuntimeError("boom")):
        assert should_block("/api/import-markdown", "curl/8") is False


def test_csp_contains_allow_list():
    csp = build_content_security_policy()
    assert "default-src 'self'" in csp
    assert "img-src 'self' data: https://cdn.sanity.io" in csp
    assert "frame-ancestors 'none'" in csp
    assert csp.endswith("upgrade-insecure-requests")
