"""CEX lag detection - compare spot prices against odds on 'will X be above $Y' events."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

import structlog

from skewmarket.ingestion.polymarket.normalize import days_until, parse_prices, pick_active_market
from skewmarket.models import (
    CryptoThreshold,
    LagOpportunity,
    LagSignal,
    ScoredEvent,
    ThresholdDirection,
)

log = structlog.get_logger(__name__)

MAX_DAYS_FOR_LAG = 30.0
LAGGING_THRESHOLD_PCT = 10.0
SIGNAL_MIN_LAG = 0.05


@dataclass(frozen=True)
class SymbolPattern:
    symbol: str
    regex: re.Pattern[str]
    min_price: float
    max_price: float


def _symbol_regex(names: str) -> re.Pattern[str]:
    # name, then the first number after it, with optional $, thousands commas and k suffix
    return re.compile(rf"\b(?:{names})\b.*?\$?(\d[\d,]*(?:\.\d+)?)\s*(k)?\b", re.IGNORECASE)


SYMBOL_PATTERNS = (
    SymbolPattern("BTC", _symbol_regex("bitcoin|btc"), 10_000, 1_000_000),
    SymbolPattern("ETH", _symbol_regex("ethereum|eth|ether"), 100, 50_000),
    SymbolPattern("SOL", _symbol_regex("solana|sol"), 5, 5_000),
)

ABOVE_KEYWORDS = re.compile(r"\b(above|over|exceed|reach|hit|close above|close over)\b", re.IGNORECASE)
BELOW_KEYWORDS = re.compile(r"\b(below|under|drop|fall|less than|close below|close under)\b", re.IGNORECASE)

# Titles that are not a single simple price threshold
EXCLUDE_PATTERNS = (
    re.compile(r"\bor\b.*\$[\d,]+", re.IGNORECASE),
    re.compile(r"\bfirst\b", re.IGNORECASE),
    re.compile(r"\bhold\b.*\bof\b", re.IGNORECASE),
    re.compile(r"\bmarket\s*cap\b", re.IGNORECASE),
    re.compile(r"\breserves?\b", re.IGNORECASE),
    re.compile(r"\bflip\b", re.IGNORECASE),
    re.compile(r"\bwin\b|\belection\b", re.IGNORECASE),
)

# (lower edge of priceDeltaPct, implied yes) for 'above'; 'below' mirrors the sign
_ABOVE_BUCKETS = ((5.0, 0.97), (2.0, 0.92), (0.5, 0.80), (-0.5, 0.55), (-2.0, 0.30), (-5.0, 0.10))
_FLOOR_IMPLIED = 0.03


def _normalize_price(raw: str, k_suffix: str | None) -> float | None:
    try:
        value = float(raw.replace(",", ""))
    except ValueError:
        return None
    if k_suffix:
        value *= 1000
    return value


def parse_crypto_threshold(title: str) -> CryptoThreshold | None:
    """Read symbol, threshold and direction out of a title like 'Will Bitcoin be above $100k on ...?'."""
    if not title:
        return None
    if any(p.search(title) for p in EXCLUDE_PATTERNS):
        return None
    has_above = ABOVE_KEYWORDS.search(title) is not None
    has_below = BELOW_KEYWORDS.search(title) is not None
    if not has_above and not has_below:
        return None

    for pattern in SYMBOL_PATTERNS:
        match = pattern.regex.search(title)
        if match is None:
            continue
        threshold = _normalize_price(match.group(1), match.group(2))
        if not threshold or threshold <= 0:
            continue
        if threshold < pattern.min_price or threshold > pattern.max_price:
            continue
        direction = ThresholdDirection.BELOW if has_below else ThresholdDirection.ABOVE
        return CryptoThreshold(symbol=pattern.symbol, threshold=threshold, direction=direction)
    return None


def implied_yes_probability(price_delta_pct: float, direction: ThresholdDirection) -> float:
    """Step function from spot-vs-threshold distance to a fair 'yes' probability."""
    signed = price_delta_pct if direction is ThresholdDirection.ABOVE else -price_delta_pct
    for lower, implied in _ABOVE_BUCKETS:
        if signed > lower:
            return implied
    return _FLOOR_IMPLIED


def compute_lag_signal(
    spot_price: float | None,
    threshold: float | None,
    direction: ThresholdDirection,
    yes_price: float,
    days_left: float | None,
) -> LagSignal | None:
    if not spot_price or not threshold:
        return None

    price_delta_pct = (spot_price - threshold) / threshold * 100
    implied = implied_yes_probability(price_delta_pct, direction)

    # More time left means more can change: pull the estimate toward a coin flip.
    if days_left is not None and days_left > 0.5:
        blend = min(days_left / 7, 1) * 0.6
        implied = implied * (1 - blend) + 0.5 * blend

    lag_amount = implied - yes_price
    lag_pct = abs(lag_amount) * 100
    if lag_amount > SIGNAL_MIN_LAG:
        signal = "BUY YES"
    elif lag_amount < -SIGNAL_MIN_LAG:
        signal = "BUY NO"
    else:
        signal = None

    if lag_pct >= 25 and abs(price_delta_pct) > 3:
        confidence = "high"
    elif lag_pct >= 15 and abs(price_delta_pct) > 1:
        confidence = "medium"
    else:
        confidence = "low"

    return LagSignal(
        is_lagging=lag_pct >= LAGGING_THRESHOLD_PCT,
        lag_pct=lag_pct,
        lag_amount=lag_amount,
        implied_yes=implied,
        actual_yes=yes_price,
        signal=signal,
        confidence=confidence,
        price_delta_pct=price_delta_pct,
        spot_price=spot_price,
        threshold=threshold,
        direction=direction,
    )


def find_lag_opportunities(
    events: list[ScoredEvent],
    spot_prices: Mapping[str, float],
    max_days: float = MAX_DAYS_FOR_LAG,
    now: datetime | None = None,
) -> list[LagOpportunity]:
    """Lag signals for every crypto-threshold event we can price; lagging first, then by lag size."""
    opportunities = []
    for scored in events:
        event = scored.event
        parsed = parse_crypto_threshold(event.display_title)
        if parsed is None:
            continue
        spot = spot_prices.get(parsed.symbol)
        if not spot:
            continue
        market = pick_active_market(event)
        prices = parse_prices(market.outcome_prices) if market is not None else None
        if prices is None:
            continue
        days_left = days_until(event.end_date, now)
        if days_left is not None and days_left > max_days:
            continue
        lag = compute_lag_signal(spot, parsed.threshold, parsed.direction, prices[0], days_left)
        if lag is None:
            continue
        opportunities.append(
            LagOpportunity(
                event=scored,
                market=market,
                symbol=parsed.symbol,
                threshold=parsed.threshold,
                direction=parsed.direction,
                lag=lag,
            )
        )
    opportunities.sort(key=lambda o: (not o.lag.is_lagging, -o.lag.lag_pct))
    log.debug("lag_scan", candidates=len(events), signals=len(opportunities))
    return opportunities
