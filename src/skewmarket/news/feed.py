"""News collaborator - Google News RSS search, ranked by keyword overlap with live event titles."""

from __future__ import annotations

import html
import re
import time
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable

import httpx
import structlog

from skewmarket.exceptions import UpstreamError
from skewmarket.models import MarketEvent, NewsItem

log = structlog.get_logger(__name__)

NEWS_BASE_URL = "https://news.google.com/rss"
MIN_REFETCH_SEC = 30.0
DESCRIPTION_MAX_CHARS = 200
DEDUPE_PREFIX_CHARS = 60

CATEGORY_QUERIES = {
    "Politics": ["US politics prediction market", "Trump policy", "Congress legislation"],
    "Crypto": ["bitcoin crypto market", "ethereum price", "crypto regulation"],
    "Sports": ["NFL NBA sports betting odds", "Super Bowl", "soccer football"],
    "Culture": ["pop culture entertainment", "celebrity news", "video games"],
    "Finance": ["stock market Wall Street", "IPO stocks investing"],
    "Tech": ["technology AI startups"],
    "World": ["geopolitics Ukraine Russia", "NATO trade war", "world news"],
    "Economy": ["economy GDP inflation", "Federal Reserve interest rates"],
}
DEFAULT_QUERIES = ["prediction market polymarket", "politics crypto sports news"]

SKIP_WORDS = frozenset(
    "will what when with this that from have been more than before after about into over under "
    "does their which would could should other each most some these those them then only very "
    "just also year years market price".split()
)
_WORD = re.compile(r"[a-z]{4,}")
_TAG = re.compile(r"<[^>]*>")


def queries_for(category: str | None) -> list[str]:
    return CATEGORY_QUERIES.get(category or "", DEFAULT_QUERIES)


def search_url(base_url: str, query: str) -> str:
    return str(
        httpx.URL(
            base_url.rstrip("/") + "/search",
            params={"q": query, "hl": "en-US", "gl": "US", "ceid": "US:en"},
        )
    )


def _text(item: ET.Element, tag: str) -> str:
    node = item.find(tag)
    return (node.text or "").strip() if node is not None else ""


def _strip_html(text: str) -> str:
    return html.unescape(_TAG.sub("", text)).strip()


def _parse_pub_date(text: str) -> datetime | None:
    if not text:
        return None
    try:
        dt = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def parse_rss(xml_text: str, category: str = "General") -> list[NewsItem]:
    """Items with both a title and a link. Unparseable XML yields []."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        log.debug("rss_parse_failed", error=str(e))
        return []
    items = []
    for item in root.iter("item"):
        title = _text(item, "title")
        link = _text(item, "link")
        if not title or not link:
            continue
        items.append(
            NewsItem(
                title=title,
                link=link,
                published_at=_parse_pub_date(_text(item, "pubDate")),
                source=_text(item, "source"),
                description=_strip_html(_text(item, "description"))[:DESCRIPTION_MAX_CHARS],
                category=category,
            )
        )
    return items


def event_keywords(events: Iterable[MarketEvent]) -> set[str]:
    keywords: set[str] = set()
    for event in events:
        for word in _WORD.findall(event.title.lower()):
            if word not in SKIP_WORDS:
                keywords.add(word)
    return keywords


def rank_by_relevance(items: list[NewsItem], events: Iterable[MarketEvent]) -> list[NewsItem]:
    """Relevance = number of event keywords in the headline; most relevant, then newest, first."""
    keywords = event_keywords(events)
    if not keywords:
        return items
    scored = []
    for item in items:
        title = item.title.lower()
        relevance = sum(1 for kw in keywords if kw in title)
        scored.append(item.model_copy(update={"relevance": relevance}))
    oldest = datetime.min.replace(tzinfo=timezone.utc)
    scored.sort(key=lambda i: (i.relevance, i.published_at or oldest), reverse=True)
    return scored


class NewsFeed:
    """Fetches and caches articles per category; refetches at most every `min_refetch_sec` unless forced."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = NEWS_BASE_URL,
        min_refetch_sec: float = MIN_REFETCH_SEC,
        clock=time.monotonic,
    ):
        self.client = client
        self.base_url = base_url
        self.min_refetch_sec = min_refetch_sec
        self._clock = clock
        self._cache: dict[str, tuple[float, list[NewsItem]]] = {}

    async def _fetch_query(self, query: str, category: str) -> list[NewsItem]:
        resp = await self.client.get(search_url(self.base_url, query))
        resp.raise_for_status()
        return parse_rss(resp.text, category)

    async def fetch(
        self,
        category: str | None = None,
        events: Iterable[MarketEvent] = (),
        force: bool = False,
    ) -> list[NewsItem]:
        """Articles for the category, deduplicated by headline.

        A query that fails is logged and skipped, so partial results still come back. When every
        query fails this raises UpstreamError instead of returning an empty list, which would be
        indistinguishable from a quiet news day.
        """
        cache_key = category or ""
        cached = self._cache.get(cache_key)
        if cached is not None and not force and self._clock() - cached[0] < self.min_refetch_sec:
            return cached[1]

        label = category or "General"
        queries = queries_for(category)
        seen: set[str] = set()
        items: list[NewsItem] = []
        failures = 0
        for query in queries:
            try:
                fetched = await self._fetch_query(query, label)
            except httpx.HTTPError as e:
                failures += 1
                log.warning("news_query_failed", query=query, error=str(e))
                continue
            for item in fetched:
                key = item.title.lower()[:DEDUPE_PREFIX_CHARS]
                if key not in seen:
                    seen.add(key)
                    items.append(item)
        if failures == len(queries):
            raise UpstreamError("news", f"all {failures} queries failed")

        ranked = rank_by_relevance(items, events)
        self._cache[cache_key] = (self._clock(), ranked)
        log.debug("news_fetched", category=label, articles=len(ranked))
        return ranked
