"""
blogsite/core/logging.py — loguru structured JSON logging setup
Content pipeline, auth and rate-limit events share one record shape:
{timestamp, component, operation, ...extra}.
"""
from __future__ import annotations

import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger


def setup_logging(log_level: str = "INFO") -> None:
    """Configure loguru for structured JSON output to stdout."""
    logger.remove()
    logger.add(
        sys.stdout,
        level=log_level.upper(),
        format="{message}",
        serialize=True,
        backtrace=True,
        diagnose=False,  # never dump local variables (secrets) into logs
        colorize=False,
    )


def _build_log_record(
    component: str,
    operation: str,
    extra: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Build a base structured log record."""
    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "component": component,
        "operation": operation,
    }
    if extra:
        record.update(extra)
    return record


# ──────────────────────────────────────────────────────────────────────────────
# Content pipeline events
# ──────────────────────────────────────────────────────────────────────────────

_CONTENT_STAGES = {"generation", "validation", "import", "publish"}


def log_content_event(
    stage: str,
    action: str,
    status: str = "success",
    details: Optional[dict[str, Any]] = None,
) -> None:
    """Log a content pipeline event. status is success | warning | error."""
    if stage not in _CONTENT_STAGES:
        stage = "import"
    record = _build_log_record(f"content_{stage}", action, {
        "status": status,
        **(details or {}),
    })
    message = json.dumps(record, default=str)
    if status == "error":
        logger.error(message)
    elif status == "warning":
        logger.warning(message)
    else:
        logger.info(message)


def log_import(post_id: str, title: str, published: bool, created: bool) -> None:
    """Every successful import/update is logged with its publish state."""
    log_content_event(
        stage="publish" if published else "import",
        action="create" if created else "update",
        details={"post_id": post_id, "title": title, "published": published},
    )


def log_conversion_issue(
    source: str,
    reason: str,
    context: Optional[dict[str, Any]] = None,
) -> None:
    """A construct was dropped or degraded while converting content."""
    log_content_event(
        stage="validation",
        action=f"{source}_conversion",
        status="warning",
        details={"reason": reason, "context": context or {}},
    )


# ──────────────────────────────────────────────────────────────────────────────
# Security events
# ──────────────────────────────────────────────────────────────────────────────

def log_rate_limited(client_id: str, policy: str, reset_time_ms: int) -> None:
    record = _build_log_record("rate_limiter", "deny", {
        "client": client_id[:64],
        "policy": policy,
        "reset_time": reset_time_ms,
    })
    logger.info(json.dumps(record))


def log_auth_event(operation: str, success: bool, reason: Optional[str] = None) -> None:
    """Login, logout and API-key checks. Never includes the credential."""
    record = _build_log_record("auth", operation, {
        "success": success,
        "reason": reason,
    })
    if success:
        logger.info(json.dumps(record))
    else:
        logger.warning(json.dumps(record))


def log_error(
    component: str,
    operation: str,
    error: Exception,
    context: Optional[dict[str, Any]] = None,
) -> None:
    """Every error is logged with full context."""
    tb = traceback.format_exc()
    record = _build_log_record(component, operation, {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "stack_trace": tb[:2000] if tb and tb != "NoneType: None\n" else "",
        "context": context or {},
    })
    logger.error(json.dumps(record, default=str))
