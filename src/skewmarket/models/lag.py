"""CryptoThreshold, LagSignal, LagOpportunity - CEX vs. odds divergence."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from skewmarket.models.market import Market
from skewmarket.models.scores import ScoredEvent


class ThresholdDirection(str, Enum):
    ABOVE = "above"
    BELOW = "below"


class CryptoThreshold(BaseModel):
    """A simple 'will SYMBOL be above/below $X' reading of an event title."""

    symbol: str
    threshold: float
    direction: ThresholdDirection


class LagSignal(BaseModel):
    is_lagging: bool
    lag_pct: float
    lag_amount: float
    implied_yes: float
    actual_yes: float
    signal: str | None = None  # "BUY YES" | "BUY NO"
    confidence: str = "low"
    price_delta_pct: float
    spot_price: float
    threshold: float
    direction: ThresholdDirection


class LagOpportunity(BaseModel):
    event: ScoredEvent
    market: Market
    symbol: str
    threshold: float
    direction: ThresholdDirection
    lag: LagSignal
