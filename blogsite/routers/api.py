"""
blogsite/routers/api.py — Public and programmatic API endpoints
Endpoints: /api/health, /api/posts/{slug}, /api/posts/{slug}/view, /api/import-markdown
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from blogsite.clients.sanity_client import ContentStore, get_content_store
from blogsite.config import get_settings
from blogsite.core.auth import verify_api_key
from blogsite.core.bot_detection import reject_bots
from blogsite.core.errors import NotFoundError, ValidationError
from blogsite.core.rate_limiter import RATE_LIMITS, enforce_rate_limit
from blogsite.models import ImportRequest
from blogsite.services.post_import import check_body_size, import_post, parse_json_body
from blogsite.utils.validators import parse_request_model

router = APIRouter()


def _check_slug(slug: str) -> None:
    if not slug or len(slug) > get_settings().max_slug_length:
        raise ValidationError("Invalid slug")


# ──────────────────────────────────────────────────────────────────────────────
# GET /api/health — public, no auth
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/health")
async def health_check() -> dict[str, Any]:
    """
    Configuration presence report. Reports whether each secret is set,
    never its value. Always 200; `status` is "degraded" if anything is missing.
    """
    settings = get_settings()
    checks = {
        "admin_password": bool(settings.admin_password),
        "admin_session_secret": bool(settings.admin_session_secret),
        "api_key": bool(settings.api_key),
        "content_store": bool(settings.sanity_project_id),
        "content_store_token": bool(settings.sanity_api_token),
    }
    return {
        "status": "ok" if all(checks.values()) else "degraded",
        "environment": settings.environment,
        "checks": checks,
    }


# ──────────────────────────────────────────────────────────────────────────────
# GET /api/posts/{slug} — public read, API policy
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/posts/{slug}")
def get_post(
    slug: str,
    _rl: Any = Depends(enforce_rate_limit(RATE_LIMITS["API"])),
    store: ContentStore = Depends(get_content_store),
) -> dict[str, Any]:
    _check_slug(slug)
    post = store.get_post_by_slug(slug)
    if not post:
        raise NotFoundError("Post not found")
    return {"success": True, "data": post}


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/posts/{slug}/view — view counter
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/posts/{slug}/view")
def record_view(
    slug: str,
    _bot: None = Depends(reject_bots),
    _rl: Any = Depends(enforce_rate_limit(RATE_LIMITS["VIEW_COUNT"])),
    store: ContentStore = Depends(get_content_store),
) -> dict[str, Any]:
    """Increment viewCount atomically in the store."""
    _check_slug(slug)
    post = store.get_post_by_slug(slug)
    if not post:
        raise NotFoundError("Post not found")

    updated = store.increment(post["_id"], "viewCount", 1)
    return {
        "success": True,
        "data": {"viewCount": updated.get("viewCount", 0), "postId": post["_id"]},
    }


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/import-markdown — programmatic import, X-API-Key
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/import-markdown")
async def import_markdown(
    request: Request,
    _bot: None = Depends(reject_bots),
    _rl: Any = Depends(enforce_rate_limit(RATE_LIMITS["IMPORT"])),
    _auth: bool = Depends(verify_api_key),
    store: ContentStore = Depends(get_content_store),
) -> dict[str, Any]:
    """
    Create or update a post from markdown or a block array.
    The body is read in full and measured before it is parsed.
    """
    body = await request.body()
    check_body_size(body)
    payload = parse_request_model(ImportRequest, parse_json_body(body))

    result = await run_in_threadpool(import_post, payload, store)
    return {"success": True, "post": result.post, "message": result.message}
