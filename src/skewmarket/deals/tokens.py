"""CLOB token id bookkeeping - which outcome of which event a feed key belongs to."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from skewmarket.models import MarketEvent


@dataclass(frozen=True)
class TokenRef:
    event_key: str | None
    market_index: int
    outcome_index: int


def build_token_map(events: Iterable[MarketEvent]) -> tuple[list[str], dict[str, TokenRef]]:
    """Ordered token ids (the odds-feed subscription) and token id -> position in the event list."""
    token_ids: list[str] = []
    token_map: dict[str, TokenRef] = {}
    for event in events:
        for mi, market in enumerate(event.markets):
            for oi, token_id in enumerate(market.clob_token_ids):
                if not token_id:
                    continue
                token_ids.append(token_id)
                token_map[token_id] = TokenRef(event.key, mi, oi)
    return token_ids, token_map
