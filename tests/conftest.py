"""
tests/conftest.py — Shared pytest fixtures
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from blogsite.clients.sanity_client import InMemoryContentStore, get_content_store
from blogsite.config import get_settings
from blogsite.core.rate_limiter import RateLimiter, get_rate_limiter

ADMIN_PASSWORD = "correct horse battery staple"
SESSION_SECRET = "test-session-secret-0123456789abcdef"
API_KEY = "test-api-key-1234"
BROWSER_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Known secrets, no Sanity project, fresh settings for every test."""
    monkeypatch.setenv("ENVIRONMENT", "testing")
    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)
    monkeypatch.setenv("ADMIN_SESSION_SECRET", SESSION_SECRET)
    monkeypatch.setenv("API_KEY", API_KEY)
    for name in ("SANITY_PROJECT_ID", "SANITY_API_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    get_content_store.cache_clear()
    yield
    get_settings.cache_clear()
    get_content_store.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock) -> RateLimiter:
    # rng pinned above the sweep probability: no random sweeps mid-test
    return RateLimiter(clock=clock, rng=lambda: 1.0)


@pytest.fixture
def sample_post() -> dict:
    return {
        "_id": "post-hello",
        "_type": "post",
        "title": "Hello",
        "slug": {"_type": "slug", "current": "hello"},
        "excerpt": "First post",
        "viewCount": 3,
        "content": [
            {
                "_type": "block",
                "_key": "b1",
                "style": "normal",
                "children": [{"_type": "span", "_key": "s1", "text": "Hello world", "marks": []}],
                "markDefs": [],
            }
        ],
    }


@pytest.fixture
def store(sample_post) -> InMemoryContentStore:
    return InMemoryContentStore([sample_post])


@pytest.fixture
def client(limiter, store):
    from blogsite.main import app

    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_content_store] = lambda: store
    with TestClient(app, headers={"User-Agent": BROWSER_UA}) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client):
    response = client.post("/api/admin/auth", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return client
