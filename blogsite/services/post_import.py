"""
blogsite/services/post_import.py — Import / update pipeline

External callers (AI writers, scripts) POST markdown or a ready block array;
the admin editor PUTs block arrays, Tiptap JSON or HTML. Everything is
normalised to content blocks and written through the ContentStore.

Imported posts are published immediately (publishedAt = now). There is no
draft state.
"""
from __future__ import annotations

import json
from typing import Any, Optional

from loguru import logger

from blogsite.clients.sanity_client import ContentStore, reference, utc_now_iso
from blogsite.config import get_settings
from blogsite.core import logging as app_logging
from blogsite.core.errors import PayloadTooLargeError, ValidationError
from blogsite.core.security import sanitize_markdown
from blogsite.models import ImportRequest, ImportResult, PostUpdateRequest, dump_blocks
from blogsite.services.editor_converter import html_to_blocks, tiptap_to_blocks
from blogsite.services.markdown_converter import markdown_to_blocks
from blogsite.utils.blocks import find_main_image, main_image_field, normalize_blocks
from blogsite.utils.validators import (
    check_document_id,
    check_id_list,
    check_optional_text,
    slugify,
)


# ──────────────────────────────────────────────────────────────────────────────
# Raw body handling
# ──────────────────────────────────────────────────────────────────────────────

def check_body_size(body: bytes, max_bytes: Optional[int] = None) -> None:
    """Size ceiling on the bytes actually read. Content-Length is never consulted."""
    limit = max_bytes if max_bytes is not None else get_settings().max_import_bytes
    if len(body) > limit:
        raise PayloadTooLargeError(f"Request too large (max {limit} bytes)")


def parse_json_body(body: bytes) -> Any:
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        raise ValidationError("Request body must be valid JSON") from exc


# ──────────────────────────────────────────────────────────────────────────────
# Content resolution
# ──────────────────────────────────────────────────────────────────────────────

def _blocks_from_array(content: list) -> list[Any]:
    blocks, rejected = normalize_blocks(content)
    if rejected:
        raise ValidationError(f"content contains {rejected} malformed block(s)")
    return blocks


def _blocks_from_markdown(markdown: str) -> list[Any]:
    settings = get_settings()
    if len(markdown) > settings.max_markdown_chars:
        raise ValidationError("Content too large")
    diagnostics: list[str] = []
    blocks = markdown_to_blocks(sanitize_markdown(markdown), diagnostics=diagnostics)
    if diagnostics:
        logger.info(f"Markdown import dropped {len(diagnostics)} construct(s)")
    return blocks


def resolve_import_content(request: ImportRequest) -> list[Any]:
    """Exactly one of `markdown` / `content`; arrays pass through as blocks."""
    has_markdown = request.markdown is not None
    has_content = request.content is not None
    if has_markdown and has_content:
        raise ValidationError("Provide either markdown or content, not both")
    if not has_markdown and not has_content:
        raise ValidationError("markdown or content is required")

    if has_markdown:
        if not request.markdown.strip():
            raise ValidationError("markdown must not be empty")
        return _blocks_from_markdown(request.markdown)
    if isinstance(request.content, list):
        return _blocks_from_array(request.content)
    if isinstance(request.content, str):
        return _blocks_from_markdown(request.content)
    raise ValidationError("content must be a block array or a markdown string")


def resolve_editor_content(content: Any) -> list[Any]:
    """Block array, Tiptap JSON document, or editor HTML string."""
    if isinstance(content, list):
        return _blocks_from_array(content)
    if isinstance(content, dict) and "type" in content:
        return tiptap_to_blocks(content)
    if isinstance(content, str):
        return html_to_blocks(content)
    raise ValidationError("Invalid content format")


def content_fields(blocks: list[Any]) -> dict[str, Any]:
    """`content` plus `mainImage` nominated from the first image block."""
    fields: dict[str, Any] = {"content": dump_blocks(blocks)}
    image = find_main_image(blocks)
    if image is not None:
        fields["mainImage"] = main_image_field(image)
    return fields


def _reference_fields(category_ids: Optional[list[str]], tag_ids: Optional[list[str]],
                      skip_empty: bool) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for name, ids in (("categories", category_ids), ("tags", tag_ids)):
        if ids is None or (skip_empty and not ids):
            continue
        fields[name] = [reference(doc_id) for doc_id in ids]
    return fields


def _validate_common(title: Optional[str], excerpt: Optional[str],
                     category_ids: Optional[list[str]], tag_ids: Optional[list[str]]) -> None:
    settings = get_settings()
    check_optional_text(title, "title", settings.max_title_length)
    check_optional_text(excerpt, "excerpt", settings.max_excerpt_length)
    check_id_list(category_ids, "categoryIds", settings.max_post_id_length)
    check_id_list(tag_ids, "tagIds", settings.max_post_id_length)


# ──────────────────────────────────────────────────────────────────────────────
# Pipeline entry points
# ──────────────────────────────────────────────────────────────────────────────

def import_post(request: ImportRequest, store: ContentStore) -> ImportResult:
    """
    Create a post, or patch an existing one when `postId` is given.

    A patch only sets the fields the caller supplied; omitted fields are left
    untouched. A create requires `title` and derives the slug from it.
    """
    settings = get_settings()
    _validate_common(request.title, request.excerpt, request.category_ids, request.tag_ids)
    check_document_id(request.post_id, settings.max_post_id_length)

    blocks = resolve_import_content(request)
    fields = content_fields(blocks)

    if request.post_id:
        if request.title is not None:
            fields["title"] = request.title
        if request.excerpt is not None:
            fields["excerpt"] = request.excerpt
        fields.update(_reference_fields(request.category_ids, request.tag_ids, skip_empty=False))

        post = store.patch_post(request.post_id, fields)
        app_logging.log_import(request.post_id, post.get("title", ""), published=True, created=False)
        return ImportResult(post=post, message="Post updated successfully", created=False)

    if not request.title:
        raise ValidationError("Title is required for new posts")
    slug = slugify(request.title)
    if not slug:
        raise ValidationError("Title must contain at least one letter or digit")
    if len(slug) > settings.max_slug_length:
        raise ValidationError(f"Slug too long (max {settings.max_slug_length} characters)")

    document = {
        "_type": "post",
        "title": request.title,
        "excerpt": request.excerpt or "",
        "slug": {"_type": "slug", "current": slug},
        "publishedAt": utc_now_iso(),
        "viewCount": 0,
        **fields,
        **_reference_fields(request.category_ids, request.tag_ids, skip_empty=True),
    }
    post = store.create_post(document)
    app_logging.log_import(post.get("_id", ""), request.title, published=True, created=True)
    return ImportResult(post=post, message="Post created successfully", created=True)


def update_post(post_id: str, request: PostUpdateRequest, store: ContentStore) -> dict[str, Any]:
    """Partial update from the admin editor. Returns the stored document."""
    settings = get_settings()
    check_document_id(post_id, settings.max_post_id_length, field="id")
    _validate_common(request.title, request.excerpt, request.category_ids, request.tag_ids)

    fields: dict[str, Any] = {}
    if request.title is not None:
        if not request.title.strip():
            raise ValidationError("title must not be empty")
        fields["title"] = request.title
    if request.excerpt is not None:
        fields["excerpt"] = request.excerpt
    if request.content is not None:
        fields.update(content_fields(resolve_editor_content(request.content)))
    fields.update(_reference_fields(request.category_ids, request.tag_ids, skip_empty=False))

    if not fields:
        raise ValidationError("No fields to update")

    post = store.patch_post(post_id, fields)
    app_logging.log_content_event(
        stage="publish",
        action="update",
        details={"post_id": post_id, "fields": sorted(fields)},
    )
    return post
