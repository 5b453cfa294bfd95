"""Alpha ledger - records each newly detected edge and follows it until the event leaves the active set.

Profit at resolution is a proxy: a final yes price >= 0.95 counts as YES, <= 0.05 as NO,
anything in between scores the absolute price move. Settlement data is never consulted.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

import structlog
from pydantic import ValidationError

from skewmarket.ingestion.polymarket.normalize import parse_prices
from skewmarket.models import AlphaEntry, AlphaStats, MarketEvent, MispricingResult
from skewmarket.storage.alpha import LedgerStore, MemoryLedgerStore

log = structlog.get_logger(__name__)

MAX_ENTRIES = 50
MAX_AGE_DAYS = 30
MIN_TRACKED_EDGE = 0.5
RESOLVED_YES = 0.95
RESOLVED_NO = 0.05


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_profit(entry: AlphaEntry) -> float:
    """Theoretical profit in cents per share, rounded to one decimal."""
    if entry.current_yes_price >= RESOLVED_YES:
        return round((1 - entry.yes_price) * 100, 1)
    if entry.current_yes_price <= RESOLVED_NO:
        return round((1 - entry.no_price) * 100, 1)
    return round(abs(entry.current_yes_price - entry.yes_price) * 100, 1)


def _first_market_prices(event: MarketEvent) -> list[float] | None:
    if not event.markets:
        return None
    return parse_prices(event.markets[0].outcome_prices)


class AlphaLedger:
    """Owns the entry list (newest first) and its persisted copy.

    Every mutation is written through the store; a failed write is logged and the ledger
    carries on in memory.
    """

    def __init__(
        self,
        store: LedgerStore | None = None,
        *,
        max_entries: int = MAX_ENTRIES,
        max_age_days: int = MAX_AGE_DAYS,
        min_edge: float = MIN_TRACKED_EDGE,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store or MemoryLedgerStore()
        self.max_entries = max_entries
        self.max_age_days = max_age_days
        self.min_edge = min_edge
        self._clock = clock or _utcnow
        self._entries: list[AlphaEntry] = self._load()

    @property
    def entries(self) -> list[AlphaEntry]:
        return list(self._entries)

    def get(self, entry_id: str) -> AlphaEntry | None:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def _load(self) -> list[AlphaEntry]:
        raw = self.store.load()
        if not raw:
            return []
        cutoff = self._clock() - timedelta(days=self.max_age_days)
        entries = []
        for row in raw:
            try:
                entry = AlphaEntry.model_validate(row)
            except ValidationError as e:
                log.warning("ledger_entry_skipped", entry_id=row.get("id"), error=str(e))
                continue
            if entry.detected_at > cutoff:
                entries.append(entry)
        if len(entries) != len(raw):
            log.info("ledger_pruned", loaded=len(entries), dropped=len(raw) - len(entries))
        return entries

    def _persist(self) -> None:
        if not self.store.save([e.to_record() for e in self._entries]):
            log.warning("ledger_persist_failed", entries=len(self._entries))

    def track_edge(self, event: MarketEvent, mispricing: MispricingResult) -> AlphaEntry | None:
        """Record a newly seen edge. Returns the new entry, or None if nothing was recorded."""
        if mispricing.edge_percent <= self.min_edge:
            return None
        entry_id = event.key
        if not entry_id or self.get(entry_id) is not None:
            return None

        yes_price, no_price = 0.5, 0.5
        prices = _first_market_prices(event)
        if prices is not None:
            yes_price = prices[0] or 0.5
            no_price = prices[1] or 0.5

        now = self._clock()
        first_question = event.markets[0].question if event.markets else None
        entry = AlphaEntry(
            id=entry_id,
            title=event.title or first_question or "Unknown",
            detected_at=now,
            edge_percent=mispricing.edge_percent,
            edge_type=mispricing.type.value,
            mode=mispricing.mode.value,
            yes_price=yes_price,
            no_price=no_price,
            current_yes_price=yes_price,
            last_updated=now,
            slug=event.slug or "",
        )
        self._entries.insert(0, entry)
        if len(self._entries) > self.max_entries:
            self._evict_one()
        log.info("edge_tracked", entry_id=entry_id, edge_percent=round(entry.edge_percent, 2), mode=entry.mode)
        self._persist()
        return entry

    def _evict_one(self) -> None:
        for i in range(len(self._entries) - 1, -1, -1):
            if self._entries[i].resolved:
                del self._entries[i]
                return
        self._entries.pop()

    def update_prices(self, active_events: Iterable[MarketEvent]) -> int:
        """Resolve entries whose event left the active set; refresh the rest. Returns entries changed."""
        active = {}
        for event in active_events:
            if event.key:
                active[event.key] = event

        now = self._clock()
        changed = 0
        for i, entry in enumerate(self._entries):
            if entry.resolved:
                continue
            event = active.get(entry.id)
            if event is None:
                resolved = entry.model_copy(
                    update={"resolved": True, "resolved_at": now, "profit": compute_profit(entry)}
                )
                self._entries[i] = resolved
                changed += 1
                log.info("edge_resolved", entry_id=entry.id, profit=resolved.profit)
                continue
            prices = _first_market_prices(event)
            if prices is not None and prices[0] != entry.current_yes_price:
                self._entries[i] = entry.model_copy(
                    update={"current_yes_price": prices[0], "last_updated": now}
                )
                changed += 1

        if changed:
            self._persist()
        return changed

    def stats(self) -> AlphaStats:
        resolved = [e for e in self._entries if e.resolved]
        if not resolved:
            return AlphaStats(total_edges=len(self._entries))
        wins = [e for e in resolved if e.profit is not None and e.profit > 0]
        total_profit = sum(e.profit or 0 for e in resolved)
        total_days = sum(
            (e.resolved_at - e.detected_at).total_seconds() / 86400 for e in resolved if e.resolved_at
        )
        return AlphaStats(
            total_edges=len(self._entries),
            resolved_count=len(resolved),
            win_rate=round(len(wins) / len(resolved) * 100, 1),
            avg_resolution_days=round(total_days / len(resolved), 1),
            total_theoretical_profit=round(total_profit, 1),
        )
