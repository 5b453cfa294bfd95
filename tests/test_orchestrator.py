"""Poll cycle end to end against a mocked Gamma API and static feeds."""

from __future__ import annotations

import asyncio

import pytest
from conftest import NOW, GammaStub, StaticOddsFeed, StaticSpotFeed, event_record, market_record

from skewmarket.alpha.ledger import AlphaLedger
from skewmarket.config import Settings
from skewmarket.deals.orchestrator import DealsOrchestrator
from skewmarket.exceptions import UpstreamError
from skewmarket.ingestion.polymarket.gamma import parse_events
from skewmarket.ingestion.polymarket.normalize import parse_prices
from skewmarket.storage.alpha import MemoryLedgerStore

FED = event_record(
    id="e1",
    title="Will the Fed cut rates in March?",
    markets=[market_record(("0.52", "0.51"), tokens=("t1", "t2"))],
    tags=("Economy",),
)
CLOSED = event_record(id="e2", title="Already settled", closed=True)
THIN = event_record(id="e3", title="Thin market", volume=1_000, liquidity=1_000, end_days=0.5)
FLAT = event_record(
    id="e4",
    title="Will it snow in Paris?",
    markets=[market_record(("0.5", "0.5"), tokens=("t3", "t4"))],
    tags=("World",),
)
BTC = event_record(id="e5", title="Will Bitcoin be above $100k on March 3?", prices=("0.3", "0.7"), end_days=2)


def _orchestrator(stub: GammaStub, clock, odds=None, spot=None, **settings) -> DealsOrchestrator:
    return DealsOrchestrator(
        Settings(gamma={"api_base": "https://gamma.test"}, **settings),
        client=stub.client(),
        ledger=AlphaLedger(MemoryLedgerStore(), clock=clock),
        odds_feed=odds or StaticOddsFeed(),
        spot_feed=spot or StaticSpotFeed(),
        clock=clock,
    )


def test_poll_scores_filters_and_ranks(clock):
    stub = GammaStub([FLAT, CLOSED, THIN, FED])
    orch = _orchestrator(stub, clock, polling={"event_limit": 50})
    events = asyncio.run(orch.poll_once())

    assert [s.key for s in events] == ["e1", "e4"]
    assert events[0].mispricing.type == "high"
    assert round(events[0].mispricing.edge_percent, 6) == 3.0
    assert events[1].mispricing.edge_percent == 0
    assert orch.last_update == NOW
    assert orch.last_error is None

    [request] = stub.requests
    assert request.url.path == "/events"
    assert request.url.params["active"] == "true"
    assert request.url.params["closed"] == "false"
    assert request.url.params["archived"] == "false"
    assert request.url.params["limit"] == "50"
    assert request.url.params["end_date_min"] == "2026-03-01T12:00:00Z"


def test_poll_tracks_edges_and_subscribes_tokens(clock):
    orch = _orchestrator(GammaStub([FED, FLAT]), clock)
    asyncio.run(orch.poll_once())

    assert [e.id for e in orch.ledger.entries] == ["e1"]
    assert orch.ledger.get("e1").yes_price == 0.52
    assert orch.odds_feed.keys == ("t1", "t2", "t3", "t4")
    assert orch.token_map["t4"].event_key == "e4"
    assert orch.token_map["t2"].outcome_index == 1


def test_event_leaving_the_feed_resolves_its_ledger_entry(clock):
    stub = GammaStub([FED, FLAT], [FLAT])
    orch = _orchestrator(stub, clock)

    async def scenario():
        await orch.poll_once()
        clock.advance(hours=6)
        await orch.poll_once()

    asyncio.run(scenario())
    entry = orch.ledger.get("e1")
    assert entry.resolved
    assert entry.profit == 0.0
    assert orch.odds_feed.keys == ("t3", "t4")
    assert orch.poll_count == 2


def test_upstream_failure_keeps_previous_events(clock):
    stub = GammaStub([FED, FLAT], 500)
    orch = _orchestrator(stub, clock)

    async def scenario():
        await orch.poll_once()
        return await orch.poll_once()

    events = asyncio.run(scenario())
    assert [s.key for s in events] == ["e1", "e4"]
    assert orch.last_error == "gamma: HTTP 500"
    assert orch.poll_count == 1
    assert not orch.ledger.get("e1").resolved
    assert orch.status()["last_error"] == "gamma: HTTP 500"


def test_malformed_body_is_a_failed_poll(clock):
    stub = GammaStub([FED, FLAT], {"error": "rate limited"})
    orch = _orchestrator(stub, clock)

    async def scenario():
        await orch.poll_once()
        clock.advance(hours=1)
        return await orch.poll_once()

    events = asyncio.run(scenario())
    assert orch.last_error == "gamma: unexpected response shape"
    assert [s.key for s in events] == ["e1", "e4"]
    assert not orch.ledger.get("e1").resolved
    assert orch.odds_feed.keys == ("t1", "t2", "t3", "t4")


def test_parse_events_accepts_wrapped_list_only():
    assert [e.id for e in parse_events({"data": [FED, "junk"]})] == ["e1"]
    for body in ({"error": "rate limited"}, {"data": {"id": "e1"}}, "events", None):
        with pytest.raises(UpstreamError):
            parse_events(body)


def test_views_use_filters_and_live_prices(clock):
    orch = _orchestrator(GammaStub([FED, FLAT, THIN]), clock, odds=StaticOddsFeed({"t1": 0.6}))
    asyncio.run(orch.poll_once())

    assert [s.key for s in orch.view("mispricing")] == ["e1"]
    assert [s.key for s in orch.view("all", category="World")] == ["e4"]
    assert [s.key for s in orch.view("all", search="SNOW")] == ["e4"]
    assert len(orch.view("all", limit=1)) == 1

    live = orch.live_view()
    assert parse_prices(live[0].event.markets[0].outcome_prices) == [0.6, 0.51]
    assert parse_prices(orch.events[0].event.markets[0].outcome_prices) == [0.52, 0.51]
    assert live[0].combined_score == orch.events[0].combined_score


def test_lag_opportunities_use_spot_prices(clock):
    orch = _orchestrator(GammaStub([BTC, FED]), clock, spot=StaticSpotFeed({"BTC": 110_000.0}))
    asyncio.run(orch.poll_once())

    [opportunity] = orch.lag_opportunities()
    assert opportunity.symbol == "BTC"
    assert opportunity.threshold == 100_000
    assert opportunity.lag.is_lagging
    assert opportunity.lag.signal == "BUY YES"


def test_status_reports_feeds(clock):
    orch = _orchestrator(GammaStub([FED]), clock)
    asyncio.run(orch.poll_once())
    status = orch.status()
    assert status["events"] == 1
    assert status["polls"] == 1
    assert status["last_update"] == NOW.isoformat()
    assert [f["feed"] for f in status["feeds"]] == ["odds", "spot"]
    assert status["feeds"][0]["status"] == "disconnected"
    assert status["feeds"][0]["keys"] == 2


def test_run_polls_until_stopped(clock):
    orch = _orchestrator(GammaStub([FED]), clock, polling={"interval_sec": 0.01})

    async def scenario():
        stop = asyncio.Event()
        task = asyncio.create_task(orch.run(stop))
        while orch.poll_count < 3:
            await asyncio.sleep(0.005)
        assert orch.odds_feed.running
        stop.set()
        await asyncio.wait_for(task, 1)

    asyncio.run(scenario())
    assert not orch.odds_feed.running
    assert not orch.spot_feed.running
