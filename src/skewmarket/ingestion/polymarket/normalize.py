"""Polymarket Gamma event records and CLOB WS messages -> canonical fields.

Everything here is pure. Malformed input never raises: unparseable prices, dates or
payloads come back as None / [] and the caller skips the item.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from skewmarket.models import Market, MarketEvent, PriceUpdate

FUTURE_SAFETY_MARGIN = timedelta(hours=1)
SECONDS_PER_DAY = 86400.0


def parse_float(s: Any) -> float | None:
    """Finite float from a number or numeric string; None otherwise."""
    if s is None or isinstance(s, bool):
        return None
    try:
        v = float(s)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp from the API. Naive values are taken as UTC."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_prices(raw: Any) -> list[float] | None:
    """Decode an outcomePrices value. Valid only if it is a list of >= 2 finite numbers in [0, 1]."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            return None
    if not isinstance(raw, list) or len(raw) < 2:
        return None
    prices = []
    for p in raw:
        v = parse_float(p)
        if v is None or v < 0 or v > 1:
            return None
        prices.append(v)
    return prices


def pick_active_market(event: MarketEvent | None) -> Market | None:
    """First open market with valid prices, else first market with valid prices, else the first market."""
    markets = event.markets if event is not None else []
    if not markets:
        return None
    for m in markets:
        if m.closed is True or m.active is False:
            continue
        if parse_prices(m.outcome_prices) is not None:
            return m
    for m in markets:
        if parse_prices(m.outcome_prices) is not None:
            return m
    return markets[0]


def days_until(end_date: str | None, now: datetime | None = None) -> float | None:
    """Days from now until end_date, floored at 0. None when absent or unparseable."""
    end = parse_datetime(end_date)
    if end is None:
        return None
    now = now or _utcnow()
    return max(0.0, (end - now).total_seconds() / SECONDS_PER_DAY)


def is_future(date_string: str | None, now: datetime | None = None) -> bool:
    """True if absent, or later than now minus a one-hour margin. False when unparseable."""
    if not date_string:
        return True
    dt = parse_datetime(date_string)
    if dt is None:
        return False
    now = now or _utcnow()
    return dt > now - FUTURE_SAFETY_MARGIN


@dataclass
class ValidationResult:
    issues: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues


def validate_event(event: MarketEvent | None, now: datetime | None = None) -> ValidationResult:
    """Check an event is displayable; every failing check adds a human-readable issue."""
    if event is None:
        return ValidationResult(["Event is null"])
    result = ValidationResult()
    if not event.slug:
        result.issues.append("Missing or invalid slug")
    if not event.markets:
        result.issues.append("No markets available")
    if event.closed is True:
        result.issues.append("Event is closed")
    if event.active is False:
        result.issues.append("Event is not active")
    if event.end_date and not is_future(event.end_date, now):
        result.issues.append("Event has ended")

    market = pick_active_market(event)
    if market is None:
        result.issues.append("No valid market found")
    else:
        if parse_prices(market.outcome_prices) is None:
            result.issues.append("Invalid outcome prices")
        if market.closed is True:
            result.issues.append("All markets are closed")
    return result


def _record_update(record: Any) -> PriceUpdate | None:
    if not isinstance(record, dict):
        return None
    asset_id = record.get("asset_id")
    if not asset_id or "price" not in record:
        return None
    price = parse_float(record.get("price"))
    if price is None:
        return None
    return PriceUpdate(key=str(asset_id), price=price)


def parse_price_updates(payload: Any) -> list[PriceUpdate]:
    """Extract (asset_id, price) pairs from a CLOB market-channel message.

    Accepted shapes: a single record with asset_id/price (e.g. last_trade_price), an array
    of such records, or a record carrying a 'price_changes' or 'changes' list. Anything
    else yields no updates. Order within the message is preserved.
    """
    records: list[Any] = []
    if isinstance(payload, list):
        records.extend(payload)
    elif isinstance(payload, dict):
        records.append(payload)
        for list_key in ("price_changes", "changes"):
            changes = payload.get(list_key)
            if isinstance(changes, list):
                records.extend(changes)
    updates = []
    for record in records:
        update = _record_update(record)
        if update is not None:
            updates.append(update)
    return updates
