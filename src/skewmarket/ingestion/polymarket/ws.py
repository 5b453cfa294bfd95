"""Polymarket CLOB market channel - live outcome-token odds for the displayed events."""

from __future__ import annotations

import json
from typing import Any, Iterable

from skewmarket.config import Settings
from skewmarket.ingestion.base import ConnectFactory, PriceFeedConnector
from skewmarket.ingestion.polymarket.normalize import parse_price_updates
from skewmarket.models import PriceUpdate

DEFAULT_CLOB_WS_URL = "wss://ws-subscriptions-clob.polymarket.com/ws/market"
MAX_ASSETS = 500


class OddsFeed(PriceFeedConnector):
    """Keys are CLOB token ids; prices are probabilities in [0, 1].

    Stays disconnected while there are no token ids. The channel expects an application
    level "PING" text frame every few seconds, answered with "PONG".
    """

    name = "odds"
    requires_keys = True

    def __init__(
        self,
        url: str = DEFAULT_CLOB_WS_URL,
        *,
        token_ids: Iterable[str] | None = None,
        max_keys: int = MAX_ASSETS,
        initial_delay_sec: float = 0.5,
        ping_interval_sec: float | None = 10.0,
        **kwargs: Any,
    ):
        super().__init__(
            url,
            keys=token_ids,
            max_keys=max_keys,
            initial_delay_sec=initial_delay_sec,
            ping_interval_sec=ping_interval_sec,
            **kwargs,
        )

    def subscribe_message(self) -> str:
        return json.dumps({"assets_ids": list(self.keys), "type": "market"})

    def parse_updates(self, payload: Any) -> list[PriceUpdate]:
        return parse_price_updates(payload)

    def accepts_price(self, price: float) -> bool:
        return 0 <= price <= 1


def odds_feed_from_settings(settings: Settings, connect: ConnectFactory | None = None) -> OddsFeed:
    cfg = settings.odds_feed
    return OddsFeed(
        settings.clob_ws_url,
        max_keys=int(cfg.get("max_keys", MAX_ASSETS)),
        initial_delay_sec=float(cfg.get("initial_delay_sec", 0.5)),
        flush_interval_sec=float(cfg.get("flush_interval_sec", 0.2)),
        direction_ttl_sec=float(cfg.get("direction_ttl_sec", 1.5)),
        ping_interval_sec=float(cfg.get("ping_interval_sec", 10.0)),
        reconnect_base_delay_sec=settings.reconnect_base_delay_sec,
        reconnect_max_delay_sec=settings.reconnect_max_delay_sec,
        reconnect_max_attempts=settings.reconnect_max_attempts,
        connect=connect,
    )
