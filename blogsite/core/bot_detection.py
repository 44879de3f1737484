"""
blogsite/core/bot_detection.py — User-agent bot classification

Discovery crawlers (search engines and AI assistants that browse on a user's
behalf) are always allowed, even when they also match a block pattern.
Training/scraping bots and generic HTTP clients are blocked.
"""
from __future__ import annotations

import re
from typing import Optional

from fastapi import Header
from loguru import logger

from blogsite.core.errors import ForbiddenError

ALLOWED_CRAWLER_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"googlebot",
        r"bingbot",
        r"slurp",  # Yahoo
        r"duckduckbot",
        r"chatgpt-user",
        r"anthropic-ai",
        r"claude-web",
        r"perplexitybot",
        r"perplexity-ai",
    )
)

BLOCKED_BOT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"bot",
        r"crawler",
        r"spider",
        r"scraper",
        r"curl",
        r"wget",
        r"python",
        r"java",
        r"go-http-client",
        r"httpclient",
        r"scrapy",
        r"gptbot",
        r"chatgpt",
        r"claude",
        r"anthropic",
        r"perplexity",
        r"ccbot",
        r"google-extended",
        r"applebot-extended",
        r"bytespider",
        r"diffbot",
        r"mj12bot",
        r"ahrefs",
        r"semrush",
        r"dotbot",
    )
)


def is_allowed_crawler(user_agent: Optional[str]) -> bool:
    if not user_agent:
        return False
    return any(p.search(user_agent) for p in ALLOWED_CRAWLER_PATTERNS)


def is_bot(user_agent: Optional[str]) -> bool:
    """A missing user agent counts as a bot."""
    if not user_agent:
        return True
    if is_allowed_crawler(user_agent):
        return False
    return any(p.search(user_agent) for p in BLOCKED_BOT_PATTERNS)


async def reject_bots(user_agent: Optional[str] = Header(None, alias="User-Agent")) -> None:
    """Route guard for endpoints that must never be hit by automation."""
    if is_bot(user_agent):
        logger.info(f"Blocked bot request: {(user_agent or '<none>')[:80]}")
        raise ForbiddenError()
