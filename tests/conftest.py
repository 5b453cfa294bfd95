"""Shared fixtures: a fixed clock, Gamma-shaped event builders, offline feeds and a Gamma stub."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from skewmarket.ingestion.binance.ws import SpotFeed
from skewmarket.ingestion.polymarket.ws import OddsFeed
from skewmarket.models import MarketEvent

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def market_record(prices=("0.5", "0.5"), tokens=None, question="Will it happen?", **extra) -> dict:
    record = {
        "question": question,
        "outcomes": json.dumps(["Yes", "No"]),
        "outcomePrices": json.dumps(list(prices)),
        "closed": False,
        "active": True,
    }
    if tokens is not None:
        record["clobTokenIds"] = json.dumps(list(tokens))
    record.update(extra)
    return record


def event_record(
    id="e1",
    title="Will it happen?",
    prices=("0.5", "0.5"),
    markets=None,
    volume=2_000_000,
    liquidity=200_000,
    end_days=3.0,
    tags=(),
    **extra,
) -> dict:
    record = {
        "id": id,
        "title": title,
        "slug": f"slug-{id}" if id else None,
        "volume": volume,
        "liquidity": liquidity,
        "endDate": iso(NOW + timedelta(days=end_days)) if end_days is not None else None,
        "closed": False,
        "active": True,
        "tags": [{"id": str(i), "label": label} for i, label in enumerate(tags)],
        "markets": markets if markets is not None else [market_record(prices)],
    }
    record.update(extra)
    return record


def make_event(**kwargs) -> MarketEvent:
    return MarketEvent.model_validate(event_record(**kwargs))


@pytest.fixture
def now() -> datetime:
    return NOW


class Clock:
    """Settable clock for ledger tests."""

    def __init__(self, start: datetime = NOW):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta) -> None:
        self.current += timedelta(**delta)


@pytest.fixture
def clock() -> Clock:
    return Clock()


class StaticOddsFeed(OddsFeed):
    """Odds feed that never connects and reports a fixed price table."""

    def __init__(self, prices=None):
        super().__init__(initial_delay_sec=60)
        self.static_prices = dict(prices or {})

    @property
    def prices(self):
        return self.static_prices


class StaticSpotFeed(SpotFeed):
    def __init__(self, prices=None):
        super().__init__(initial_delay_sec=60, health_check_interval_sec=None)
        self.static_prices = dict(prices or {})

    @property
    def prices(self):
        return self.static_prices


class GammaStub:
    """Serves queued /events responses through httpx.MockTransport and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(body, int):
            return httpx.Response(body, json={"error": "unavailable"})
        return httpx.Response(200, json=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))
