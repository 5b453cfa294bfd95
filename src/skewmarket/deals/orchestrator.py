"""Deals orchestrator - poll, score, track edges, keep the odds feed on the displayed tokens."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

import httpx
import structlog

from skewmarket.alpha.ledger import AlphaLedger
from skewmarket.analysis.cex_lag import find_lag_opportunities
from skewmarket.analysis.scoring import ScoringParams, confidence_score, score_event
from skewmarket.config import Settings
from skewmarket.deals.categories import extract_categories
from skewmarket.deals.filters import filter_events, merge_live_prices
from skewmarket.deals.notifier import NewEventWatcher
from skewmarket.deals.tokens import TokenRef, build_token_map
from skewmarket.exceptions import ConfigError, UpstreamError
from skewmarket.ingestion.base import PriceFeedConnector
from skewmarket.ingestion.binance.ws import spot_feed_from_settings
from skewmarket.ingestion.polymarket.gamma import fetch_events
from skewmarket.ingestion.polymarket.normalize import validate_event
from skewmarket.ingestion.polymarket.ws import odds_feed_from_settings
from skewmarket.models import LagOpportunity, MarketEvent, ScoredEvent
from skewmarket.storage.alpha import DuckDBLedgerStore

log = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def score_events(
    events: Iterable[MarketEvent],
    params: ScoringParams,
    min_confidence: int = 50,
    now: datetime | None = None,
) -> list[ScoredEvent]:
    """Validate, drop low-confidence events, score the rest; best combined score first."""
    accepted = []
    for event in events:
        if not validate_event(event, now).valid:
            continue
        confidence = confidence_score(event, now)
        if confidence.confidence_pct < min_confidence:
            continue
        accepted.append(score_event(event, params, now, confidence=confidence))
    accepted.sort(key=lambda s: s.combined_score, reverse=True)
    return accepted


class DealsOrchestrator:
    """Holds the current scored event list and the two price feeds.

    The feeds own their price tables; the orchestrator only reads their snapshots.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        ledger: AlphaLedger | None = None,
        odds_feed: PriceFeedConnector | None = None,
        spot_feed: PriceFeedConnector | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.settings = settings or Settings()
        s = self.settings
        self.params = ScoringParams(multi_max_deviation=s.multi_max_deviation, min_edge=s.min_edge_percent)
        self._client = client
        self._owns_client = client is None
        self._clock = clock or _utcnow
        self.ledger = ledger or AlphaLedger(
            DuckDBLedgerStore(s.db_path, s.alpha_storage_key),
            max_entries=s.alpha_max_entries,
            max_age_days=s.alpha_max_age_days,
            min_edge=s.min_edge_percent,
        )
        self.odds_feed = odds_feed or odds_feed_from_settings(s)
        self.spot_feed = spot_feed or spot_feed_from_settings(s)
        self.watcher = NewEventWatcher()

        self._events: list[ScoredEvent] = []
        self.token_map: dict[str, TokenRef] = {}
        self.last_update: datetime | None = None
        self.last_error: str | None = None
        self.poll_count = 0

    @property
    def events(self) -> list[ScoredEvent]:
        return list(self._events)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.gamma_timeout_sec)
        return self._client

    async def poll_once(self) -> list[ScoredEvent]:
        """One poll cycle. An upstream failure keeps the previous events and sets last_error."""
        cfg = self.settings
        now = self._clock()
        try:
            raw = await fetch_events(self._get_client(), cfg.gamma_api_base, cfg.event_limit, now)
        except UpstreamError as e:
            self.last_error = str(e)
            log.warning("poll_failed", error=str(e))
            return self.events

        accepted = score_events(raw, self.params, cfg.min_confidence, now)
        for scored in accepted:
            if scored.mispricing.edge_percent > self.params.min_edge:
                self.ledger.track_edge(scored.event, scored.mispricing)

        self._events = accepted
        self.last_update = now
        self.last_error = None
        self.poll_count += 1
        self.ledger.update_prices(s.event for s in accepted)

        token_ids, self.token_map = build_token_map(s.event for s in accepted)
        self.odds_feed.set_keys(token_ids)

        for event in self.watcher.observe(raw):
            log.info("new_event_detected", event_id=event.id, title=event.title)

        log.info("poll_completed", fetched=len(raw), accepted=len(accepted), tokens=len(token_ids))
        return self.events

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Poll on the configured interval with both feeds running, until stop_event is set."""
        stop = stop_event or asyncio.Event()
        self.odds_feed.start()
        self.spot_feed.start()
        log.info("orchestrator_started", interval_sec=self.settings.poll_interval_sec)
        try:
            while not stop.is_set():
                await self.poll_once()
                try:
                    await asyncio.wait_for(stop.wait(), timeout=self.settings.poll_interval_sec)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.odds_feed.aclose()
            await self.spot_feed.aclose()
            log.info("orchestrator_stopped", polls=self.poll_count)

    async def aclose(self) -> None:
        await self.odds_feed.aclose()
        await self.spot_feed.aclose()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # Views

    def view(
        self,
        filter_name: str = "all",
        category: str | None = None,
        search: str | None = None,
        live: bool = False,
        limit: int | None = None,
    ) -> list[ScoredEvent]:
        result = filter_events(
            self._events,
            filter_name,
            category=category,
            search=search,
            verified_confidence=self.settings.verified_confidence,
        )
        if limit is not None:
            result = result[:limit]
        if live:
            result = merge_live_prices(result, self.odds_feed.prices)
        return result

    def live_view(self, filter_name: str = "all", category: str | None = None, search: str | None = None) -> list[ScoredEvent]:
        return self.view(filter_name, category, search, live=True)

    def categories(self) -> list[str]:
        return extract_categories(s.event for s in self._events)

    def lag_opportunities(self) -> list[LagOpportunity]:
        return find_lag_opportunities(
            self._events,
            self.spot_feed.prices,
            max_days=self.settings.lag_max_days,
            now=self._clock(),
        )

    def status(self) -> dict[str, Any]:
        return {
            "events": len(self._events),
            "polls": self.poll_count,
            "last_update": self.last_update.isoformat() if self.last_update else None,
            "last_error": self.last_error,
            "feeds": [self.odds_feed.status_info(), self.spot_feed.status_info()],
        }

    def feed(self, name: str) -> PriceFeedConnector:
        for feed in (self.odds_feed, self.spot_feed):
            if feed.name == name:
                return feed
        raise ConfigError(f"Unknown feed {name!r}; expected one of {self.odds_feed.name}, {self.spot_feed.name}")

    def restart_feed(self, name: str) -> dict[str, Any]:
        """Restart a feed that gave up (or is stuck) with a fresh reconnect budget."""
        feed = self.feed(name)
        feed.restart()
        log.info("feed_restarted", feed=name)
        return feed.status_info()
