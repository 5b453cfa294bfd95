"""Which side a detected edge favors, with a one-line reason."""

from __future__ import annotations

from dataclasses import dataclass

from skewmarket.ingestion.polymarket.normalize import parse_prices, pick_active_market
from skewmarket.models import EdgeMode, MarketEvent, ScoredEvent

MIN_EDGE = 0.5
SUM_TOLERANCE = 0.005
MIN_CHOICES_FOR_MULTI = 3


@dataclass(frozen=True)
class Choice:
    label: str
    yes_price: float


@dataclass(frozen=True)
class EdgeSide:
    side: str
    reason: str


def open_choices(event: MarketEvent) -> list[Choice]:
    """Open, priced sub-markets as choices, highest yes price first."""
    choices = []
    for m in event.markets:
        if m.closed is True or m.active is False:
            continue
        prices = parse_prices(m.outcome_prices)
        if prices is None:
            continue
        choices.append(Choice(m.group_item_title or m.question or "Option", prices[0]))
    choices.sort(key=lambda c: c.yes_price, reverse=True)
    return choices


def _cents(p: float) -> str:
    return f"{p * 100:.1f}¢"


def edge_side(scored: ScoredEvent) -> EdgeSide | None:
    if scored.mispricing.edge_percent <= MIN_EDGE:
        return None
    event = scored.event

    choices = open_choices(event)
    if len(choices) >= MIN_CHOICES_FOR_MULTI and scored.mispricing.mode is EdgeMode.MULTI:
        total = sum(c.yes_price for c in choices)
        if total > 1 + SUM_TOLERANCE:
            top = choices[0]
            return EdgeSide(
                top.label,
                f'Prices sum to {total * 100:.1f}% (> 100%): "{top.label}" may be overpriced at {_cents(top.yes_price)}',
            )
        if total < 1 - SUM_TOLERANCE:
            best = choices[-1]
            return EdgeSide(
                best.label,
                f'Prices sum to {total * 100:.1f}% (< 100%): "{best.label}" may be underpriced at {_cents(best.yes_price)}',
            )
        return EdgeSide(choices[0].label, f"Slight mispricing detected across {len(choices)} outcomes")

    market = pick_active_market(event)
    prices = parse_prices(market.outcome_prices) if market is not None else None
    if prices is None:
        return None
    yes_price, no_price = prices[0], prices[1]
    total = yes_price + no_price
    if total > 1 + SUM_TOLERANCE:
        return EdgeSide("No", "Prices sum > 100%: No side is overpriced")
    if total < 1 - SUM_TOLERANCE:
        return EdgeSide("Yes", "Prices sum < 100%: Yes side is underpriced")
    if yes_price > no_price:
        return EdgeSide("No", f"Yes is priced high ({_cents(yes_price)}): edge on No")
    return EdgeSide("Yes", f"No is priced high ({_cents(no_price)}): edge on Yes")
