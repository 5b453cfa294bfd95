"""Binance combined mini-ticker stream - spot prices for the tracked crypto symbols."""

from __future__ import annotations

from typing import Any, Iterable

from skewmarket.config import Settings
from skewmarket.ingestion.base import ConnectFactory, PriceFeedConnector
from skewmarket.ingestion.polymarket.normalize import parse_float
from skewmarket.models import PriceUpdate

DEFAULT_STREAM_URL = "wss://stream.binance.com:9443/stream"
DEFAULT_SYMBOLS = ("BTC", "ETH", "SOL")
STREAM_SUFFIX = "usdt@miniTicker"


def stream_name(symbol: str) -> str:
    return f"{symbol.lower()}{STREAM_SUFFIX}"


def build_stream_url(base_url: str, symbols: Iterable[str]) -> str:
    """Combined-stream URL, e.g. .../stream?streams=btcusdt@miniTicker/ethusdt@miniTicker."""
    return f"{base_url}?streams=" + "/".join(stream_name(s) for s in symbols)


class SpotFeed(PriceFeedConnector):
    """Keys are upper-case symbols (BTC, ETH, ...); prices are USDT last prices.

    Streams are chosen in the URL, so there is no subscribe message. Binance sends a
    mini-ticker roughly every second; a socket silent past the health timeout is replaced.
    """

    name = "spot"

    def __init__(
        self,
        url: str = DEFAULT_STREAM_URL,
        *,
        symbols: Iterable[str] = DEFAULT_SYMBOLS,
        initial_delay_sec: float = 0.3,
        health_check_interval_sec: float | None = 30.0,
        health_timeout_sec: float | None = 65.0,
        **kwargs: Any,
    ):
        super().__init__(
            url,
            keys=[s.upper() for s in symbols],
            initial_delay_sec=initial_delay_sec,
            health_check_interval_sec=health_check_interval_sec,
            health_timeout_sec=health_timeout_sec,
            **kwargs,
        )

    @property
    def stream_map(self) -> dict[str, str]:
        return {stream_name(s): s for s in self.keys}

    def connect_url(self) -> str:
        return build_stream_url(self.url, self.keys)

    def parse_updates(self, payload: Any) -> list[PriceUpdate]:
        if not isinstance(payload, dict):
            return []
        stream = payload.get("stream")
        data = payload.get("data")
        symbol = self.stream_map.get(stream) if isinstance(stream, str) else None
        if symbol is None or not isinstance(data, dict):
            return []
        price = parse_float(data.get("c"))
        if price is None:
            return []
        return [PriceUpdate(key=symbol, price=price)]

    def accepts_price(self, price: float) -> bool:
        return price > 0


def spot_feed_from_settings(settings: Settings, connect: ConnectFactory | None = None) -> SpotFeed:
    cfg = settings.spot_feed
    return SpotFeed(
        settings.binance_ws_base,
        symbols=settings.spot_symbols,
        initial_delay_sec=float(cfg.get("initial_delay_sec", 0.3)),
        flush_interval_sec=float(cfg.get("flush_interval_sec", 0.2)),
        direction_ttl_sec=float(cfg.get("direction_ttl_sec", 1.5)),
        health_check_interval_sec=float(cfg.get("health_check_interval_sec", 30.0)),
        health_timeout_sec=float(cfg.get("health_timeout_sec", 65.0)),
        reconnect_base_delay_sec=settings.reconnect_base_delay_sec,
        reconnect_max_delay_sec=settings.reconnect_max_delay_sec,
        reconnect_max_attempts=settings.reconnect_max_attempts,
        connect=connect,
    )
