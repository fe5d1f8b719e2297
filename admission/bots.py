"""
admission/bots.py -- User-agent based bot detection stage.

Each request's User-Agent is matched against signature groups, in order:

  search_engine  well-known crawlers (Googlebot, Bingbot, ...)
  headless       browser automation (HeadlessChrome, Puppeteer, Selenium, ...)
  scraper        SEO/AI crawlers and generic "spider"/"crawler" agents
  automated      HTTP libraries and CLI tools (curl, python-requests, ...)

search_engine is checked first so "Googlebot" is not caught by the generic
bot/crawler patterns. A missing or empty User-Agent is "unspecified" -- real
browsers always send one.

Categories listed in Settings.bot_allowed_categories pass (search engines by
default); every other detected category is denied with reason "bot".
"""

from __future__ import annotations

import re
from typing import Optional

from admission.models import AdmissionRequest, Decision, DenyReason
from core.config import Settings

_SIGNATURES: tuple[tuple[str, re.Pattern], ...] = (
    (
        "search_engine",
        re.compile(
            r"googlebot|google-inspectiontool|bingbot|bingpreview|duckduckbot|baiduspider|yandex(bot|images)"
            r"|applebot|slurp|sogou|exabot|seznambot|qwantify",
            re.IGNORECASE,
        ),
    ),
    (
        "headless",
        re.compile(r"headlesschrome|phantomjs|puppeteer|playwright|selenium|webdriver|slimerjs", re.IGNORECASE),
    ),
    (
        "scraper",
        re.compile(
            r"scrapy|crawler|spider|ahrefsbot|semrushbot|mj12bot|dotbot|petalbot|bytespider|gptbot|ccbot"
            r"|claudebot|amazonbot|dataforseobot",
            re.IGNORECASE,
        ),
    ),
    (
        "automated",
        re.compile(
            r"^(curl|wget|httpie|xh)/|python-requests|python-urllib|python-httpx|aiohttp|go-http-client|okhttp"
            r"|^java/|libwww-perl|apache-httpclient|node-fetch|^axios/|postmanruntime|insomnia|\bbot\b|bot/",
            re.IGNORECASE,
        ),
    ),
)


def classify_user_agent(user_agent: str) -> Optional[str]:
    """Return the bot category for user_agent, or None for an ordinary client."""
    user_agent = user_agent.strip()
    if not user_agent:
        return "unspecified"
    for category, pattern in _SIGNATURES:
        if pattern.search(user_agent):
            return category
    return None


class BotStage:
    name = "bot"

    def __init__(self, settings: Settings) -> None:
        self.allowed_categories = frozenset(settings.bot_allowed_categories)

    def inspect(self, request: AdmissionRequest) -> Optional[Decision]:
        category = classify_user_agent(request.user_agent)
        if category is None or category in self.allowed_categories:
            return None
        return Decision.deny(DenyReason.BOT, rule=category)
