"""
blogsite/clients/sanity_client.py — Content store (Sanity) client

The core only needs five operations from the store; they are expressed as the
ContentStore protocol so routes can be tested against InMemoryContentStore.
SanityContentStore talks to the Sanity HTTP API (GROQ query + mutate
endpoints). Writes are keyed by explicit document id or are pure creates, so
a caller may resubmit safely; nothing here retries on its own.
"""
from __future__ import annotations

import copy
import json
import re
import threading
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional, Protocol

import httpx
from loguru import logger

from blogsite.config import get_settings
from blogsite.core import logging as app_logging
from blogsite.core.errors import ConfigurationError, UpstreamStoreError

POST_BY_ID_QUERY = """*[_type == "post" && _id == $id][0] {
  _id, title, slug, excerpt, content, mainImage, publishedAt, viewCount,
  categories[]->{_id, title, slug},
  tags[]->{_id, title, slug}
}"""

POST_BY_SLUG_QUERY = """*[_type == "post" && slug.current == $slug][0] {
  _id, title, slug, excerpt, content, mainImage, publishedAt, viewCount,
  categories[]->{_id, title, slug},
  tags[]->{_id, title, slug}
}"""


class ContentStore(Protocol):
    def get_post(self, post_id: str) -> Optional[dict[str, Any]]: ...

    def get_post_by_slug(self, slug: str) -> Optional[dict[str, Any]]: ...

    def create_post(self, document: dict[str, Any]) -> dict[str, Any]: ...

    def patch_post(self, post_id: str, fields: dict[str, Any]) -> dict[str, Any]: ...

    def increment(self, post_id: str, field: str, amount: int = 1) -> dict[str, Any]: ...


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def reference(document_id: str) -> dict[str, str]:
    return {"_type": "reference", "_ref": document_id, "_key": uuid.uuid4().hex[:12]}


# ──────────────────────────────────────────────────────────────────────────────
# Image asset references
# ──────────────────────────────────────────────────────────────────────────────

_ASSET_REF_RE = re.compile(r"^image-([A-Za-z0-9]+)-(\d+x\d+)-([a-z0-9]+)$")
_CDN_URL_RE = re.compile(
    r"^https://cdn\.sanity\.io/images/[^/]+/[^/]+/([A-Za-z0-9]+)-(\d+x\d+)\.([a-z0-9]+)(?:\?.*)?$"
)


def resolve_sanity_asset(url_or_ref: Optional[str]) -> Optional[str]:
    """
    Recover an existing asset reference from a ref string or a Sanity CDN URL.
    Returns None for anything else; images are never uploaded implicitly.
    """
    if not url_or_ref:
        return None
    candidate = url_or_ref.strip()
    if _ASSET_REF_RE.match(candidate):
        return candidate
    match = _CDN_URL_RE.match(candidate)
    if match:
        asset_id, dimensions, fmt = match.groups()
        return f"image-{asset_id}-{dimensions}-{fmt}"
    return None


def image_url_for_ref(ref: str, width: Optional[int] = None) -> Optional[str]:
    """Build the CDN URL for an asset reference, or None without a project id."""
    settings = get_settings()
    match = _ASSET_REF_RE.match(ref or "")
    if not match or not settings.sanity_project_id:
        return None
    asset_id, dimensions, fmt = match.groups()
    url = (
        f"https://cdn.sanity.io/images/{settings.sanity_project_id}/"
        f"{settings.sanity_dataset}/{asset_id}-{dimensions}.{fmt}"
    )
    if width:
        url += f"?w={width}"
    return url


# ──────────────────────────────────────────────────────────────────────────────
# HTTP client
# ──────────────────────────────────────────────────────────────────────────────

class SanityContentStore:
    """Sanity HTTP API implementation of ContentStore."""

    def __init__(
        self,
        project_id: str,
        dataset: str,
        api_version: str,
        token: Optional[str],
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._dataset = dataset
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=f"https://{project_id}.api.sanity.io/v{api_version.lstrip('v')}",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._has_token = bool(token)

    # ── transport helpers ────────────────────────────────────────────────────

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            app_logging.log_error("sanity_client", f"{method} {path}", exc)
            raise UpstreamStoreError(f"Content store unreachable: {exc}") from exc

        if response.status_code >= 400:
            message = _extract_error_message(response)
            logger.error(f"Sanity {method} {path} failed ({response.status_code}): {message}")
            raise UpstreamStoreError(message, upstream_status=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamStoreError("Content store returned invalid JSON") from exc

    def _query(self, query: str, params: dict[str, Any]) -> Any:
        # GROQ parameters are passed as $name=<JSON literal>.
        encoded = {f"${k}": _groq_literal(v) for k, v in params.items()}
        data = self._request(
            "GET", f"/data/query/{self._dataset}", params={"query": query, **encoded}
        )
        return data.get("result")

    def _mutate(self, mutation: dict[str, Any]) -> dict[str, Any]:
        if not self._has_token:
            raise ConfigurationError("SANITY_API_TOKEN not configured")
        data = self._request(
            "POST",
            f"/data/mutate/{self._dataset}",
            params={"returnDocuments": "true", "autoGenerateArrayKeys": "true"},
            json={"mutations": [mutation]},
        )
        results = data.get("results") or []
        if not results or "document" not in results[0]:
            raise UpstreamStoreError("Content store returned no document")
        return results[0]["document"]

    # ── ContentStore ─────────────────────────────────────────────────────────

    def get_post(self, post_id: str) -> Optional[dict[str, Any]]:
        return self._query(POST_BY_ID_QUERY, {"id": post_id})

    def get_post_by_slug(self, slug: str) -> Optional[dict[str, Any]]:
        return self._query(POST_BY_SLUG_QUERY, {"slug": slug})

    def create_post(self, document: dict[str, Any]) -> dict[str, Any]:
        return self._mutate({"create": document})

    def patch_post(self, post_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return self._mutate({"patch": {"id": post_id, "set": fields}})

    def increment(self, post_id: str, field: str, amount: int = 1) -> dict[str, Any]:
        return self._mutate({
            "patch": {"id": post_id, "setIfMissing": {field: 0}, "inc": {field: amount}}
        })

    def close(self) -> None:
        self._client.close()


def _groq_literal(value: Any) -> str:
    return json.dumps(value)


def _extract_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("description") or error.get("message") or error)
    if error:
        return str(body.get("message") or error)
    return f"HTTP {response.status_code}"


# ──────────────────────────────────────────────────────────────────────────────
# In-memory store (tests, local development)
# ──────────────────────────────────────────────────────────────────────────────

class InMemoryContentStore:
    """Dict-backed ContentStore. Document-level operations are atomic."""

    def __init__(self, documents: Optional[list[dict[str, Any]]] = None) -> None:
        self._docs: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()
        for doc in documents or []:
            self._docs[doc["_id"]] = copy.deepcopy(doc)

    def get_post(self, post_id: str) -> Optional[dict[str, Any]]:
        doc = self._docs.get(post_id)
        return copy.deepcopy(doc) if doc else None

    def get_post_by_slug(self, slug: str) -> Optional[dict[str, Any]]:
        for doc in self._docs.values():
            if (doc.get("slug") or {}).get("current") == slug:
                return copy.deepcopy(doc)
        return None

    def create_post(self, document: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            doc = copy.deepcopy(document)
            doc.setdefault("_id", uuid.uuid4().hex)
            doc["_createdAt"] = doc["_updatedAt"] = utc_now_iso()
            self._docs[doc["_id"]] = doc
            return copy.deepcopy(doc)

    def patch_post(self, post_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            doc = self._docs.get(post_id)
            if doc is None:
                raise UpstreamStoreError(f"Document not found: {post_id}", upstream_status=404)
            doc.update(copy.deepcopy(fields))
            doc["_updatedAt"] = utc_now_iso()
            return copy.deepcopy(doc)

    def increment(self, post_id: str, field: str, amount: int = 1) -> dict[str, Any]:
        with self._lock:
            doc = self._docs.get(post_id)
            if doc is None:
                raise UpstreamStoreError(f"Document not found: {post_id}", upstream_status=404)
            doc[field] = int(doc.get(field) or 0) + amount
            return copy.deepcopy(doc)


# ──────────────────────────────────────────────────────────────────────────────
# Dependency
# ──────────────────────────────────────────────────────────────────────────────

@lru_cache()
def get_content_store() -> ContentStore:
    """
    Process-wide store. Falls back to an in-memory store when no Sanity
    project is configured (local development).
    """
    settings = get_settings()
    if not settings.sanity_project_id:
        logger.warning("SANITY_PROJECT_ID not set - using in-memory content store")
        return InMemoryContentStore()
    return SanityContentStore(
        project_id=settings.sanity_project_id,
        dataset=settings.sanity_dataset,
        api_version=settings.sanity_api_version,
        token=settings.sanity_api_token,
        timeout=settings.sanity_timeout_seconds,
    )
