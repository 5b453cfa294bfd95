"""Filters, categories, live price overlay, token map, edge side and new-event watcher."""

import pytest
from conftest import NOW, make_event, market_record

from skewmarket.analysis.scoring import score_event
from skewmarket.deals.categories import event_categories, extract_categories
from skewmarket.deals.edge import edge_side, open_choices
from skewmarket.deals.filters import filter_events, matches_filter, merge_live_prices
from skewmarket.deals.notifier import NewEventWatcher
from skewmarket.deals.tokens import TokenRef, build_token_map
from skewmarket.exceptions import ConfigError
from skewmarket.ingestion.polymarket.normalize import parse_prices


def _scored(**kwargs):
    return score_event(make_event(**kwargs), now=NOW)


@pytest.fixture
def scored_events():
    return [
        _scored(id="edge", title="Will the Fed cut?", prices=("0.52", "0.51"), tags=("Economy",)),
        _scored(id="thin", title="Quiet market", volume=40_000, liquidity=20_000, end_days=20, tags=("Trump",)),
        _scored(id="far", title="Will Trump sign it?", end_days=60, tags=("Politics", "Congress")),
    ]


def test_named_filters(scored_events):
    by_filter = {name: [s.key for s in filter_events(scored_events, name)] for name in ("all", "verified", "mispricing", "hot", "highvolume", "ending")}
    assert by_filter["all"] == ["edge", "far", "thin"]
    assert by_filter["verified"] == ["edge", "far"]
    assert by_filter["mispricing"] == ["edge"]
    assert by_filter["hot"] == ["edge", "far"]
    assert by_filter["highvolume"] == ["edge", "far"]
    assert by_filter["ending"] == ["edge"]


def test_search_and_category(scored_events):
    assert [s.key for s in filter_events(scored_events, search="trump")] == ["far"]
    assert [s.key for s in filter_events(scored_events, category="Politics")] == ["far", "thin"]
    assert filter_events(scored_events, category="Sports") == []


def test_unknown_filter_is_rejected(scored_events):
    with pytest.raises(ConfigError):
        filter_events(scored_events, "bogus")
    with pytest.raises(ConfigError):
        matches_filter(scored_events[0], "bogus")


def test_categories():
    events = [
        make_event(id="a", tags=("Politics", "Trump")),
        make_event(id="b", tags=("Congress",)),
        make_event(id="c", tags=("NFL", "Crypto")),
        make_event(id="d", tags=("Crypto", "Unmapped")),
    ]
    assert event_categories(events[0]) == ["Politics"]
    assert event_categories(events[2]) == ["Sports", "Crypto"]
    assert extract_categories(events) == ["Politics", "Crypto"]
    assert extract_categories(events, min_events=1) == ["Politics", "Crypto", "Sports"]


def test_merge_live_prices_overrides_known_tokens_only():
    scored = [
        _scored(id="a", markets=[market_record(("0.4", "0.6"), tokens=("ta0", "ta1"))]),
        _scored(id="b", markets=[market_record(("0.3", "0.7"), tokens=("tb0", "tb1"))]),
        _scored(id="c", markets=[market_record(("0.3", "0.7"))]),
    ]
    merged = merge_live_prices(scored, {"ta1": 0.55, "zz": 0.1})
    assert parse_prices(merged[0].event.markets[0].outcome_prices) == [0.4, 0.55]
    assert merged[1] is scored[1]
    assert merged[2] is scored[2]
    assert parse_prices(scored[0].event.markets[0].outcome_prices) == [0.4, 0.6]
    assert merge_live_prices(scored, {}) == scored


def test_token_map_preserves_event_order():
    events = [
        make_event(id="a", markets=[market_record(tokens=("1", "2")), market_record(tokens=("3", "4"))]),
        make_event(id="b", markets=[market_record(tokens=("5",)), market_record()]),
    ]
    token_ids, token_map = build_token_map(events)
    assert token_ids == ["1", "2", "3", "4", "5"]
    assert token_map["4"] == TokenRef("a", 1, 1)
    assert token_map["5"] == TokenRef("b", 0, 0)


def test_edge_side_binary():
    assert edge_side(_scored(prices=("0.52", "0.51"))).side == "No"
    assert edge_side(_scored(prices=("0.45", "0.52"))).reason == "Prices sum < 100%: Yes side is underpriced"
    assert edge_side(_scored(prices=("0.5", "0.5"))) is None


def test_edge_side_multi():
    markets = [
        market_record(("0.5", "0.5"), groupItemTitle="Alice"),
        market_record(("0.35", "0.65"), groupItemTitle="Bob"),
        market_record(("0.2", "0.8"), groupItemTitle="Carol"),
        market_record(("0", "1"), groupItemTitle="Closed", closed=True),
    ]
    scored = _scored(markets=markets)
    assert scored.mispricing.mode == "multi"
    assert [c.label for c in open_choices(scored.event)] == ["Alice", "Bob", "Carol"]
    side = edge_side(scored)
    assert side.side == "Alice"
    assert side.reason.startswith("Prices sum to 105.0% (> 100%)")


def test_watcher_reports_only_unseen_events():
    watcher = NewEventWatcher()
    assert watcher.observe([make_event(id="a"), make_event(id="b")]) == []
    assert watcher.primed
    fresh = watcher.observe([make_event(id="a"), make_event(id="c"), make_event(id="d", closed=True), make_event(id="e", markets=[])])
    assert [e.id for e in fresh] == ["c"]
    assert watcher.observe([make_event(id="c")]) == []
