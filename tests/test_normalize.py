"""Normalizer unit tests: price parsing, dates, validation, CLOB message parsing."""

from datetime import timedelta

from conftest import NOW, iso, make_event, market_record

from skewmarket.ingestion.polymarket.normalize import (
    days_until,
    is_future,
    parse_price_updates,
    parse_prices,
    pick_active_market,
    validate_event,
)
from skewmarket.models import PriceUpdate


def test_parse_prices_accepts_json_string_and_list():
    assert parse_prices('["0.4", "0.6"]') == [0.4, 0.6]
    assert parse_prices([0.25, "0.75", 0]) == [0.25, 0.75, 0.0]


def test_parse_prices_rejects_malformed():
    assert parse_prices(None) is None
    assert parse_prices("not json") is None
    assert parse_prices('["0.4"]') is None  # fewer than two outcomes
    assert parse_prices('["1.2", "0.1"]') is None
    assert parse_prices('["-0.1", "0.9"]') is None
    assert parse_prices(["0.5", "abc"]) is None
    assert parse_prices(["0.5", "NaN"]) is None
    assert parse_prices({"yes": 0.5}) is None


def test_days_until_and_is_future():
    assert days_until(iso(NOW + timedelta(days=2)), NOW) == 2.0
    assert days_until(iso(NOW - timedelta(days=2)), NOW) == 0.0
    assert days_until(None, NOW) is None
    assert days_until("yesterday-ish", NOW) is None

    assert is_future(None, NOW) is True
    assert is_future(iso(NOW - timedelta(minutes=30)), NOW) is True  # inside the one-hour margin
    assert is_future(iso(NOW - timedelta(hours=2)), NOW) is False
    assert is_future("garbage", NOW) is False


def test_pick_active_market_prefers_open_priced_market():
    event = make_event(
        markets=[
            market_record(("0.9", "0.1"), question="closed one", closed=True),
            market_record(("0.3", "0.7"), question="open one"),
        ]
    )
    assert pick_active_market(event).question == "open one"

    no_prices = make_event(markets=[market_record(question="a", outcomePrices="[]")])
    assert pick_active_market(no_prices).question == "a"
    assert pick_active_market(make_event(markets=[])) is None


def test_validate_event_accepts_good_event():
    result = validate_event(make_event(), NOW)
    assert result.valid
    assert result.issues == []


def test_validate_event_reports_every_issue():
    assert validate_event(None).issues == ["Event is null"]

    closed = make_event(closed=True, active=False)
    issues = validate_event(closed, NOW).issues
    assert "Event is closed" in issues
    assert "Event is not active" in issues

    ended = make_event(end_days=-1)
    assert "Event has ended" in validate_event(ended, NOW).issues

    empty = make_event(id=None, markets=[])
    issues = validate_event(empty, NOW).issues
    assert "Missing or invalid slug" in issues
    assert "No markets available" in issues
    assert "No valid market found" in issues

    bad_prices = make_event(markets=[market_record(("0.5",))])
    assert validate_event(bad_prices, NOW).issues == ["Invalid outcome prices"]


def test_validate_event_flags_all_closed_markets():
    event = make_event(markets=[market_record(closed=True)])
    assert validate_event(event, NOW).issues == ["All markets are closed"]


def test_parse_price_updates_shapes():
    assert parse_price_updates([{"asset_id": "a", "price": "0.55"}, {"asset_id": "b"}]) == [
        PriceUpdate("a", 0.55)
    ]
    assert parse_price_updates({"event_type": "last_trade_price", "asset_id": "x", "price": 0.3}) == [
        PriceUpdate("x", 0.3)
    ]
    changes = {
        "event_type": "price_change",
        "price_changes": [{"asset_id": "c", "price": "0.1"}, {"asset_id": "d", "price": "0.2"}],
    }
    assert [u.key for u in parse_price_updates(changes)] == ["c", "d"]
    assert parse_price_updates({"changes": [{"asset_id": "e", "price": "0.9"}]}) == [PriceUpdate("e", 0.9)]


def test_parse_price_updates_ignores_garbage():
    assert parse_price_updates("PONG") == []
    assert parse_price_updates(None) == []
    assert parse_price_updates([1, "x", {"asset_id": "a", "price": "n/a"}]) == []
