"""
tests/test_bot_detection.py — Unit tests for user-agent classification
"""
from __future__ import annotations

import pytest

from blogsite.core.bot_detection import is_allowed_crawler, is_bot


def test_missing_user_agent_is_bot():
    assert is_bot(None) is True
    assert is_bot("") is True


def test_googlebot_is_allowed():
    ua = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"
    assert is_bot(ua) is False


def test_python_client_is_bot():
    assert is_bot("python-requests/2.28") is True


def test_chatgpt_user_is_allowed_even_though_chatgpt_is_blocked():
    assert is_bot("ChatGPT-User/1.0") is False
    assert is_bot("GPTBot/1.0") is True


@pytest.mark.parametrize("ua", [
    "curl/8.4.0",
    "Wget/1.21",
    "Scrapy/2.11",
    "Go-http-client/1.1",
    "CCBot/2.0",
    "Bytespider",
    "AhrefsBot/7.0",
    "SemrushBot/7",
])
def test_automation_signatures_are_bots(ua):
    assert is_bot(ua) is True


@pytest.mark.parametrize("ua", [
    "Mozilla/5.0 (compatible; bingbot/2.0; +http://www.bing.com/bingbot.htm)",
    "DuckDuckBot/1.1",
    "PerplexityBot/1.0",
    "Claude-Web/1.0",
])
def test_discovery_crawlers_are_allowed(ua):
    assert is_allowed_crawler(ua) is True
    assert is_bot(ua) is False


def test_regular_browser_is_not_bot():
    ua = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"
    assert is_bot(ua) is False
    assert is_allowed_crawler(ua) is False
