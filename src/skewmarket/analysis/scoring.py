"""Mispricing, hot-deal and confidence scoring over normalized Gamma events.

All functions are pure and deterministic for a given `now`.
"""

from __future__ import annotations

import math
from datetime import datetime

from pydantic import BaseModel, Field

from skewmarket.ingestion.polymarket.normalize import days_until, parse_prices, pick_active_market
from skewmarket.models import (
    ConfidenceLevel,
    ConfidenceResult,
    EdgeMode,
    EdgeType,
    HotDealResult,
    MarketEvent,
    MispricingResult,
    ScoredEvent,
)


class EdgeBand(BaseModel):
    """Edge strictly above `above` maps to this score/type; confidence depends on the mode."""

    above: float
    score: int
    type: EdgeType
    multi_confidence: int
    binary_confidence: int


DEFAULT_BANDS = [
    EdgeBand(above=5.0, score=100, type=EdgeType.EXTREME, multi_confidence=85, binary_confidence=60),
    EdgeBand(above=2.0, score=75, type=EdgeType.HIGH, multi_confidence=90, binary_confidence=80),
    EdgeBand(above=1.0, score=50, type=EdgeType.MEDIUM, multi_confidence=95, binary_confidence=95),
    EdgeBand(above=0.5, score=25, type=EdgeType.LOW, multi_confidence=100, binary_confidence=100),
]


class ScoringParams(BaseModel):
    """Heuristic cut-offs. Defaults are the production values; all are tunable from [scoring]."""

    multi_max_deviation: float = 15.0  # above this the sub-markets are independent, not competing
    min_edge: float = 0.5
    bands: list[EdgeBand] = Field(default_factory=lambda: list(DEFAULT_BANDS))


DEFAULT_PARAMS = ScoringParams()


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _price_sum_deviation(prices: list[float]) -> float:
    return abs(1 - sum(prices)) * 100


def mispricing_score(event: MarketEvent, params: ScoringParams = DEFAULT_PARAMS) -> MispricingResult:
    """Edge = how far quoted probabilities are from summing to 1, as a percentage.

    Multi mode sums the first-outcome price of every priced sub-market; binary mode sums
    the two outcomes of the active market. Binary is used as a fallback when multi mode is
    rejected or finds less than `min_edge`.
    """
    markets = event.markets
    if not markets:
        return MispricingResult()

    edge = 0.0
    mode: EdgeMode | None = None

    if len(markets) >= 2:
        yes_prices = []
        for m in markets:
            prices = parse_prices(m.outcome_prices)
            if prices is not None:
                yes_prices.append(prices[0])
        if len(yes_prices) >= 2:
            deviation = _price_sum_deviation(yes_prices)
            if deviation <= params.multi_max_deviation:
                edge = deviation
                mode = EdgeMode.MULTI

    if mode is None or (mode is EdgeMode.MULTI and edge < params.min_edge):
        prices = parse_prices(getattr(pick_active_market(event), "outcome_prices", None))
        if prices is not None:
            binary_edge = _price_sum_deviation(prices[:2])
            if binary_edge > edge:
                edge = binary_edge
                mode = EdgeMode.BINARY

    if edge == 0 or mode is None:
        return MispricingResult()

    for band in params.bands:
        if edge > band.above:
            confidence = band.multi_confidence if mode is EdgeMode.MULTI else band.binary_confidence
            return MispricingResult(
                score=band.score,
                edge_percent=edge,
                type=band.type,
                confidence_pct=confidence,
                mode=mode,
            )
    return MispricingResult(edge_percent=edge, confidence_pct=100, mode=mode)


def hot_deal_score(event: MarketEvent, now: datetime | None = None) -> HotDealResult:
    """Additive attention score from volume, liquidity, price uncertainty and time left."""
    score = 0
    factors: list[str] = []
    data_quality = 100

    volume = event.volume
    if volume > 1_000_000:
        score += 30
        factors.append("Very High Volume")
    elif volume > 500_000:
        score += 25
        factors.append("High Volume")
    elif volume > 100_000:
        score += 15
        factors.append("Good Volume")
    elif volume < 10_000:
        data_quality -= 10

    liquidity = event.liquidity
    if liquidity > 100_000:
        score += 25
        factors.append("High Liquidity")
    elif liquidity > 50_000:
        score += 15
        factors.append("Good Liquidity")
    elif liquidity < 10_000:
        data_quality -= 15

    prices = parse_prices(getattr(pick_active_market(event), "outcome_prices", None))
    if prices is not None:
        uncertainty = 1 - abs(0.5 - prices[0]) * 2
        score += _round_half_up(uncertainty * 20)
        if uncertainty > 0.8:
            factors.append("High Uncertainty")

    days_left = days_until(event.end_date, now)
    if days_left is not None:
        if 1 < days_left < 7:
            score += 25
            factors.append("Ending Soon")
        elif 7 <= days_left < 30:
            score += 15
            factors.append("Active Market")
        elif days_left < 1:
            data_quality -= 20

    return HotDealResult(score=score, factors=factors, data_quality=data_quality)


def confidence_score(event: MarketEvent, now: datetime | None = None) -> ConfidenceResult:
    """Trust in the quoted data: starts at 100, penalized for thin books, imminent end, odd sums."""
    confidence = 100
    warnings: list[str] = []

    if event.volume < 50_000:
        confidence -= 15
        warnings.append("Low volume")
    if event.liquidity < 25_000:
        confidence -= 20
        warnings.append("Low liquidity")
    days_left = days_until(event.end_date, now)
    if days_left is not None and days_left < 1:
        confidence -= 30
        warnings.append("Ending very soon")

    prices = parse_prices(getattr(pick_active_market(event), "outcome_prices", None))
    if prices is not None:
        total = sum(prices)
        if total < 0.9 or total > 1.1:
            confidence -= 10
            warnings.append("Price spread unusual")

    confidence = max(0, confidence)
    if confidence >= 80:
        level = ConfidenceLevel.HIGH
    elif confidence >= 50:
        level = ConfidenceLevel.MEDIUM
    else:
        level = ConfidenceLevel.LOW
    return ConfidenceResult(confidence_pct=confidence, warnings=warnings, level=level)


def combined_score(
    confidence: ConfidenceResult, mispricing: MispricingResult, hot_deal: HotDealResult
) -> float:
    """Ranking key used wherever events are listed (descending)."""
    return confidence.confidence_pct * 2 + mispricing.score * 1.5 + hot_deal.score


def score_event(
    event: MarketEvent,
    params: ScoringParams = DEFAULT_PARAMS,
    now: datetime | None = None,
    confidence: ConfidenceResult | None = None,
) -> ScoredEvent:
    confidence = confidence or confidence_score(event, now)
    mispricing = mispricing_score(event, params)
    hot_deal = hot_deal_score(event, now)
    return ScoredEvent(
        event=event,
        mispricing=mispricing,
        hot_deal=hot_deal,
        confidence=confidence,
        days_left=days_until(event.end_date, now),
        combined_score=combined_score(confidence, mispricing, hot_deal),
    )
