"""Canonical schema (Pydantic) - events, scores, feed state, ledger, lag signals, news."""

from skewmarket.models.alpha import AlphaEntry, AlphaStats
from skewmarket.models.feed import (
    ConnectionStatus,
    FeedSnapshot,
    PriceDirection,
    PriceUpdate,
)
from skewmarket.models.lag import CryptoThreshold, LagOpportunity, LagSignal, ThresholdDirection
from skewmarket.models.market import Market, MarketEvent, Tag
from skewmarket.models.news import NewsItem
from skewmarket.models.scores import (
    ConfidenceLevel,
    ConfidenceResult,
    EdgeMode,
    EdgeType,
    HotDealResult,
    MispricingResult,
    ScoredEvent,
)

__all__ = [
    "AlphaEntry",
    "AlphaStats",
    "ConfidenceLevel",
    "ConfidenceResult",
    "ConnectionStatus",
    "CryptoThreshold",
    "EdgeMode",
    "EdgeType",
    "FeedSnapshot",
    "HotDealResult",
    "LagOpportunity",
    "LagSignal",
    "Market",
    "MarketEvent",
    "MispricingResult",
    "NewsItem",
    "PriceDirection",
    "PriceUpdate",
    "ScoredEvent",
    "Tag",
    "ThresholdDirection",
]
