"""
blogsite/routers/admin.py — Admin session and post editing endpoints
Endpoints: /api/admin/auth, /api/admin/posts/{post_id}, /api/admin/posts/{post_id}/editor
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool

from blogsite.clients.sanity_client import ContentStore, get_content_store
from blogsite.config import get_settings
from blogsite.core import logging as app_logging
from blogsite.core.auth import (
    clear_admin_session_cookie,
    create_admin_session,
    require_admin_session,
    set_admin_session_cookie,
    verify_admin_password,
)
from blogsite.core.errors import AuthenticationError, NotFoundError
from blogsite.core.rate_limiter import RATE_LIMITS, enforce_rate_limit
from blogsite.models import AdminLoginRequest, PostUpdateRequest
from blogsite.services.html_renderer import render_editor_content
from blogsite.services.post_import import check_body_size, parse_json_body, update_post
from blogsite.utils.validators import check_document_id, parse_request_model

router = APIRouter()


def _load_post(post_id: str, store: ContentStore) -> dict[str, Any]:
    check_document_id(post_id, get_settings().max_post_id_length, field="id")
    post = store.get_post(post_id)
    if not post:
        raise NotFoundError("Post not found")
    return post


# ──────────────────────────────────────────────────────────────────────────────
# Login / logout
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/auth")
async def login(
    request: Request,
    response: Response,
    _rl: Any = Depends(enforce_rate_limit(RATE_LIMITS["ADMIN_AUTH"])),
) -> dict[str, Any]:
    """Exchange the admin password for an admin_session cookie."""
    body = await request.body()
    payload = parse_request_model(AdminLoginRequest, parse_json_body(body))

    if not verify_admin_password(payload.password):
        app_logging.log_auth_event("admin_login", False, "invalid password")
        raise AuthenticationError()

    token = create_admin_session()
    set_admin_session_cookie(response, token)
    app_logging.log_auth_event("admin_login", True)
    return {"success": True}


@router.delete("/auth")
async def logout(response: Response) -> dict[str, Any]:
    clear_admin_session_cookie(response)
    app_logging.log_auth_event("admin_logout", True)
    return {"success": True}


# ──────────────────────────────────────────────────────────────────────────────
# Post editing (admin session required)
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/posts/{post_id}")
def get_post(
    post_id: str,
    _admin: bool = Depends(require_admin_session),
    store: ContentStore = Depends(get_content_store),
) -> dict[str, Any]:
    return {"success": True, "data": _load_post(post_id, store)}


@router.get("/posts/{post_id}/editor")
def get_editor_content(
    post_id: str,
    _admin: bool = Depends(require_admin_session),
    store: ContentStore = Depends(get_content_store),
) -> dict[str, Any]:
    """
    Stored content rendered as editor HTML. `status` separates a document
    that is legitimately empty from one that failed to convert.
    """
    post = _load_post(post_id, store)
    content = render_editor_content(post.get("content"))
    return content.model_dump(mode="json", exclude_none=True)


@router.put("/posts/{post_id}")
async def put_post(
    post_id: str,
    request: Request,
    _admin: bool = Depends(require_admin_session),
    store: ContentStore = Depends(get_content_store),
) -> dict[str, Any]:
    body = await request.body()
    check_body_size(body)
    payload = parse_request_model(PostUpdateRequest, parse_json_body(body))

    post = await run_in_threadpool(update_post, post_id, payload, store)
    return {"success": True, "data": post, "message": "Post updated successfully"}
