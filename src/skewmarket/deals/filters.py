"""Event views: named filters, category and text search, live-price overlay."""

from __future__ import annotations

from typing import Iterable, Mapping

from skewmarket.deals.categories import event_categories
from skewmarket.exceptions import ConfigError
from skewmarket.ingestion.polymarket.normalize import parse_prices
from skewmarket.models import Market, ScoredEvent

FILTERS = ("all", "verified", "mispricing", "hot", "highvolume", "ending")

VERIFIED_CONFIDENCE = 80
TRUSTED_CONFIDENCE = 70
HIGH_VOLUME = 100_000
ENDING_SOON_DAYS = 7


def matches_filter(scored: ScoredEvent, name: str, verified_confidence: int = VERIFIED_CONFIDENCE) -> bool:
    confidence = scored.confidence.confidence_pct
    if name == "all":
        return True
    if name == "verified":
        return confidence >= verified_confidence
    if name == "mispricing":
        return scored.mispricing.score >= 25 and confidence >= TRUSTED_CONFIDENCE
    if name == "hot":
        return scored.hot_deal.score >= 50 and confidence >= TRUSTED_CONFIDENCE
    if name == "highvolume":
        return scored.event.volume > HIGH_VOLUME
    if name == "ending":
        return scored.days_left is not None and 0 < scored.days_left < ENDING_SOON_DAYS
    raise ConfigError(f"Unknown filter {name!r}; expected one of {', '.join(FILTERS)}")


def matches_search(scored: ScoredEvent, query: str | None) -> bool:
    """Case-insensitive substring match on the title (or first market question)."""
    if not query:
        return True
    return query.lower() in scored.event.display_title.lower()


def filter_events(
    events: Iterable[ScoredEvent],
    filter_name: str = "all",
    category: str | None = None,
    search: str | None = None,
    verified_confidence: int = VERIFIED_CONFIDENCE,
) -> list[ScoredEvent]:
    """Events passing search, category and the named filter, best combined score first."""
    if filter_name not in FILTERS:
        raise ConfigError(f"Unknown filter {filter_name!r}; expected one of {', '.join(FILTERS)}")
    result = [
        e
        for e in events
        if matches_search(e, search)
        and (not category or category in event_categories(e.event))
        and matches_filter(e, filter_name, verified_confidence)
    ]
    result.sort(key=lambda e: e.combined_score, reverse=True)
    return result


def _merge_market(market: Market, prices: Mapping[str, float]) -> Market | None:
    quoted = parse_prices(market.outcome_prices)
    if quoted is None or not market.clob_token_ids:
        return None
    merged = list(quoted)
    changed = False
    for oi, token_id in enumerate(market.clob_token_ids):
        live = prices.get(token_id)
        if live is not None and oi < len(merged):
            merged[oi] = live
            changed = True
    if not changed:
        return None
    return market.model_copy(update={"outcome_prices": merged})


def merge_live_prices(events: Iterable[ScoredEvent], prices: Mapping[str, float]) -> list[ScoredEvent]:
    """Display copies with feed prices substituted per outcome. Scores are left as polled."""
    if not prices:
        return list(events)
    merged_events = []
    for scored in events:
        markets = []
        changed = False
        for market in scored.event.markets:
            merged = _merge_market(market, prices)
            if merged is not None:
                changed = True
            markets.append(merged or market)
        if not changed:
            merged_events.append(scored)
            continue
        event = scored.event.model_copy(update={"markets": markets})
        merged_events.append(scored.model_copy(update={"event": event}))
    return merged_events
