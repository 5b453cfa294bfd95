"""Pydantic schemas for API request/response consistency and OpenAPI docs."""

from __future__ import annotations

from datetime import datetime
from urllib.parse import quote

from pydantic import BaseModel, Field

from skewmarket.deals.categories import event_categories
from skewmarket.deals.edge import edge_side
from skewmarket.ingestion.polymarket.normalize import parse_prices, pick_active_market
from skewmarket.models import (
    AlphaEntry,
    AlphaStats,
    ConfidenceResult,
    HotDealResult,
    LagOpportunity,
    LagSignal,
    MispricingResult,
    NewsItem,
    ScoredEvent,
)

POLYMARKET_EVENT_URL = "https://polymarket.com/event/"


def event_url(slug: str | None) -> str | None:
    return POLYMARKET_EVENT_URL + quote(slug, safe="") if slug else None


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. upstream_error, invalid_option")


# --- Deals ---
class DealItem(BaseModel):
    key: str | None
    title: str
    slug: str | None = None
    url: str | None = None
    image: str | None = None
    categories: list[str] = Field(default_factory=list)
    volume: float = 0.0
    liquidity: float = 0.0
    end_date: str | None = None
    days_left: float | None = None
    prices: list[float] | None = Field(None, description="Outcome prices of the active market")
    mispricing: MispricingResult
    hot_deal: HotDealResult
    confidence: ConfidenceResult
    combined_score: float
    edge_side: str | None = None
    edge_reason: str | None = None

    @classmethod
    def from_scored(cls, scored: ScoredEvent) -> DealItem:
        event = scored.event
        market = pick_active_market(event)
        side = edge_side(scored)
        return cls(
            key=event.key,
            title=event.display_title,
            slug=event.slug,
            url=event_url(event.slug),
            image=event.image,
            categories=event_categories(event),
            volume=event.volume,
            liquidity=event.liquidity,
            end_date=event.end_date,
            days_left=scored.days_left,
            prices=parse_prices(market.outcome_prices) if market is not None else None,
            mispricing=scored.mispricing,
            hot_deal=scored.hot_deal,
            confidence=scored.confidence,
            combined_score=scored.combined_score,
            edge_side=side.side if side else None,
            edge_reason=side.reason if side else None,
        )


class DealsResponse(BaseModel):
    deals: list[DealItem]
    total: int
    last_update: datetime | None = None
    last_error: str | None = Field(None, description="Message from the last failed poll, cleared on success")


class CategoriesResponse(BaseModel):
    categories: list[str]


# --- CEX lag ---
class LagItem(BaseModel):
    key: str | None
    title: str
    url: str | None = None
    symbol: str
    lag: LagSignal

    @classmethod
    def from_opportunity(cls, opp: LagOpportunity) -> LagItem:
        event = opp.event.event
        return cls(
            key=event.key,
            title=event.display_title,
            url=event_url(event.slug),
            symbol=opp.symbol,
            lag=opp.lag,
        )


class LagResponse(BaseModel):
    opportunities: list[LagItem]
    spot_prices: dict[str, float]


# --- Alpha ledger ---
class AlphaResponse(BaseModel):
    entries: list[AlphaEntry]
    stats: AlphaStats


# --- Feeds ---
class FeedStatus(BaseModel):
    feed: str
    status: str
    keys: int
    prices: int
    messages: int
    reconnect_attempts: int
    last_update: str | None = None


class FeedsStatusResponse(BaseModel):
    events: int
    polls: int
    last_update: str | None = None
    last_error: str | None = None
    feeds: list[FeedStatus]


# --- News ---
class NewsResponse(BaseModel):
    category: str
    articles: list[NewsItem]
