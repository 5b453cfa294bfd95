"""Derived per-poll scores - mispricing, hot deal, confidence, ScoredEvent."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from skewmarket.models.market import MarketEvent


class EdgeType(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


class EdgeMode(str, Enum):
    BINARY = "binary"
    MULTI = "multi"
    NONE = "none"


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MispricingResult(BaseModel):
    score: int = 0
    edge_percent: float = Field(0.0, ge=0)
    type: EdgeType = EdgeType.NONE
    confidence_pct: int = 0
    mode: EdgeMode = EdgeMode.NONE


class HotDealResult(BaseModel):
    score: int = 0
    factors: list[str] = Field(default_factory=list)
    data_quality: int = 100


class ConfidenceResult(BaseModel):
    confidence_pct: int = Field(100, ge=0, le=100)
    warnings: list[str] = Field(default_factory=list)
    level: ConfidenceLevel = ConfidenceLevel.HIGH


class ScoredEvent(BaseModel):
    """MarketEvent plus everything derived from it in one poll cycle. Never persisted."""

    event: MarketEvent
    mispricing: MispricingResult
    hot_deal: HotDealResult
    confidence: ConfidenceResult
    days_left: float | None = None
    combined_score: float = 0.0

    @property
    def key(self) -> str | None:
        return self.event.key
