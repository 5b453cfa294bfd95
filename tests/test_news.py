"""RSS parsing, keyword ranking and the cached news fetcher."""

from __future__ import annotations

import asyncio

import httpx
import pytest
from conftest import make_event

from skewmarket.exceptions import UpstreamError
from skewmarket.news.feed import NewsFeed, event_keywords, parse_rss, queries_for, rank_by_relevance

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel>
  <item>
    <title>Fed signals rate cut in March</title>
    <link>https://news.example/fed</link>
    <pubDate>Sun, 01 Mar 2026 10:00:00 GMT</pubDate>
    <source url="https://reuters.com">Reuters</source>
    <description>&lt;a href="x"&gt;Fed&lt;/a&gt; officials &amp;amp; markets</description>
  </item>
  <item>
    <title>Bitcoin slides below key level</title>
    <link>https://news.example/btc</link>
    <pubDate>Sun, 01 Mar 2026 11:00:00 GMT</pubDate>
  </item>
  <item><title>No link here</title></item>
</channel></rss>"""


class Clock:
    def __init__(self) -> None:
        self.t = 1000.0

    def __call__(self) -> float:
        return self.t


def _feed(handler, clock=None) -> NewsFeed:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NewsFeed(client, "https://news.test/rss", min_refetch_sec=30, clock=clock or Clock())


def test_parse_rss():
    items = parse_rss(RSS, "Economy")
    assert [i.link for i in items] == ["https://news.example/fed", "https://news.example/btc"]
    fed = items[0]
    assert fed.source == "Reuters"
    assert fed.description == "Fed officials & markets"
    assert fed.category == "Economy"
    assert fed.published_at.hour == 10
    assert items[1].source == ""


def test_parse_rss_rejects_garbage():
    assert parse_rss("<rss><channel>") == []
    assert parse_rss("not xml at all") == []


def test_ranking_by_event_keywords():
    items = parse_rss(RSS)
    events = [make_event(id="a", title="Will Bitcoin close above $100k?")]
    assert "bitcoin" in event_keywords(events)
    assert "will" not in event_keywords(events)
    ranked = rank_by_relevance(items, events)
    assert [i.link for i in ranked] == ["https://news.example/btc", "https://news.example/fed"]
    assert ranked[0].relevance == 1
    assert rank_by_relevance(items, []) == items


def test_queries_per_category():
    assert queries_for("Crypto")[0] == "bitcoin crypto market"
    assert queries_for(None) == queries_for("Unknown")


def test_fetch_dedupes_and_caches():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, text=RSS)

    clock = Clock()
    feed = _feed(handler, clock)

    async def scenario():
        first = await feed.fetch("Economy")
        cached = await feed.fetch("Economy")
        clock.t += 31
        await feed.fetch("Economy")
        await feed.fetch("Economy", force=True)
        return first, cached

    first, cached = asyncio.run(scenario())
    queries = len(queries_for("Economy"))
    assert len(first) == 2
    assert cached is first
    assert len(requests) == 3 * queries
    assert requests[0].url.path == "/rss/search"
    assert requests[0].url.params["q"] == queries_for("Economy")[0]
    assert requests[0].url.params["ceid"] == "US:en"


def test_partial_failure_is_tolerated():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["q"] == queries_for(None)[0]:
            return httpx.Response(503)
        return httpx.Response(200, text=RSS)

    items = asyncio.run(_feed(handler).fetch())
    assert len(items) == 2
    assert items[0].category == "General"


def test_all_queries_failing_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(_feed(handler).fetch("Crypto"))
    assert exc_info.value.source == "news"
