"""
blogsite/core/rate_limiter.py — Fixed-window in-memory rate limiting

One counter per (client identity, window length). A counter resets entirely
once the clock passes its reset time; expired counters are reclaimed by an
opportunistic sweep on roughly 0.1% of checks instead of a timer thread.
Adjacent windows can therefore admit up to 2x max_requests around a boundary.
"""
from __future__ import annotations

import math
import random
import threading
import time
from typing import Callable, Mapping, NamedTuple, Optional

from fastapi import Depends, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from blogsite.core import logging as app_logging
from blogsite.core.errors import RateLimitExceeded

Clock = Callable[[], int]


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimitPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    window_ms: int = Field(gt=0)
    max_requests: int = Field(gt=0)


class RateLimitEntry(BaseModel):
    count: int = Field(ge=0)
    reset_time: int  # epoch millis


class RateLimitResult(NamedTuple):
    allowed: bool
    remaining: int
    reset_time: int


# ── Policies per route category ───────────────────────────────────────────────

RATE_LIMITS: dict[str, RateLimitPolicy] = {
    # View counter: prevent inflation
    "VIEW_COUNT": RateLimitPolicy(name="VIEW_COUNT", window_ms=60_000, max_requests=5),
    # General API reads
    "API": RateLimitPolicy(name="API", window_ms=60_000, max_requests=30),
    # Bulk import: very restrictive
    "IMPORT": RateLimitPolicy(name="IMPORT", window_ms=3_600_000, max_requests=10),
    # Admin login: brute-force protection
    "ADMIN_AUTH": RateLimitPolicy(name="ADMIN_AUTH", window_ms=15 * 60_000, max_requests=5),
}


# ──────────────────────────────────────────────────────────────────────────────
# Storage
# ──────────────────────────────────────────────────────────────────────────────

class RateLimitStore:
    """Unbounded keyed map of counters. Swappable for tests or other backends."""

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}

    def get(self, key: str) -> Optional[RateLimitEntry]:
        return self._entries.get(key)

    def set(self, key: str, entry: RateLimitEntry) -> None:
        self._entries[key] = entry

    def sweep(self, now_ms: int) -> int:
        """Delete entries whose reset time has passed. Returns the number removed."""
        expired = [k for k, e in self._entries.items() if e.reset_time < now_ms]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


# ──────────────────────────────────────────────────────────────────────────────
# Limiter
# ──────────────────────────────────────────────────────────────────────────────

class RateLimiter:
    """Fixed-window counter keyed by client identity and policy window."""

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        clock: Optional[Clock] = None,
        sweep_probability: float = 0.001,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.store = store if store is not None else RateLimitStore()
        self._clock = clock or _now_ms
        self._sweep_probability = sweep_probability
        self._rng = rng
        # FastAPI runs sync dependencies on a threadpool; keep the
        # read-compare-increment step atomic.
        self._lock = threading.Lock()

    def now(self) -> int:
        return self._clock()

    def check(self, client_id: str, policy: RateLimitPolicy) -> RateLimitResult:
        now = self._clock()
        key = f"{client_id}:{policy.window_ms}"

        with self._lock:
            if self._rng() < self._sweep_probability:
                self.store.sweep(now)

            entry = self.store.get(key)

            if entry is None or now > entry.reset_time:
                reset_time = now + policy.window_ms
                self.store.set(key, RateLimitEntry(count=1, reset_time=reset_time))
                return RateLimitResult(
                    allowed=True,
                    remaining=policy.max_requests - 1,
                    reset_time=reset_time,
                )

            if entry.count >= policy.max_requests:
                return RateLimitResult(allowed=False, remaining=0, reset_time=entry.reset_time)

            entry.count += 1
            return RateLimitResult(
                allowed=True,
                remaining=policy.max_requests - entry.count,
                reset_time=entry.reset_time,
            )


_default_limiter = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter. Override via app.dependency_overrides in tests."""
    return _default_limiter


def check_rate_limit(client_id: str, policy: RateLimitPolicy) -> RateLimitResult:
    return _default_limiter.check(client_id, policy)


# ──────────────────────────────────────────────────────────────────────────────
# Client identity and response headers
# ──────────────────────────────────────────────────────────────────────────────

def get_client_id(headers: Mapping[str, str]) -> str:
    """
    Derive a bucket key: cf-connecting-ip, then x-real-ip, then the first
    x-forwarded-for hop; falls back to the user agent so every request lands
    in some bucket.
    """
    lowered = {k.lower(): v for k, v in headers.items()}

    forwarded = lowered.get("x-forwarded-for")
    first_forwarded = forwarded.split(",")[0].strip() if forwarded else None

    ip = (
        lowered.get("cf-connecting-ip")
        or lowered.get("x-real-ip")
        or first_forwarded
    )
    if ip:
        return ip.strip()
    return lowered.get("user-agent") or "unknown"


def retry_after_seconds(result: RateLimitResult, now_ms: int) -> int:
    return max(1, math.ceil((result.reset_time - now_ms) / 1000))


def rate_limit_headers(policy: RateLimitPolicy, result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(policy.max_requests),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_time),
    }


def enforce_rate_limit(policy: RateLimitPolicy) -> Callable:
    """
    Create a FastAPI dependency applying `policy` to the calling client.

    Example:
        @router.post("/posts/{slug}/view")
        async def view(_rl=Depends(enforce_rate_limit(RATE_LIMITS["VIEW_COUNT"]))):
            ...
    """

    def dependency(
        request: Request,
        response: Response,
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitResult:
        client_id = get_client_id(request.headers)
        result = limiter.check(client_id, policy)
        headers = rate_limit_headers(policy, result)

        if not result.allowed:
            app_logging.log_rate_limited(client_id, policy.name, result.reset_time)
            raise RateLimitExceeded(
                retry_after=retry_after_seconds(result, limiter.now()),
                headers=headers,
            )

        for name, value in headers.items():
            response.headers[name] = value
        return result

    return dependency
