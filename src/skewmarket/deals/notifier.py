"""New-event watcher - reports events that were not in any earlier poll."""

from __future__ import annotations

from typing import Iterable

from skewmarket.models import MarketEvent


class NewEventWatcher:
    """The first observation only primes the seen set; later ones return unseen events in order."""

    def __init__(self) -> None:
        self._seen: set[str] = set()
        self._primed = False

    @property
    def primed(self) -> bool:
        return self._primed

    def observe(self, events: Iterable[MarketEvent]) -> list[MarketEvent]:
        fresh = []
        for event in events:
            if not event.id or not event.title or not event.markets or event.closed:
                continue
            if event.id not in self._seen:
                self._seen.add(event.id)
                fresh.append(event)
        if not self._primed:
            self._primed = True
            return []
        return fresh
