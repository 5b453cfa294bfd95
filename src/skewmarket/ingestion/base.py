"""Streaming price feed connector - connect, subscribe, receive, coalesce, reconnect.

A connector owns one WebSocket connection and the price table built from it. It is driven
entirely by the running asyncio loop: timers are `loop.call_later` handles and the socket
reader / keepalive are tasks. Every connection gets a generation number; callbacks from an
older generation are dropped, so nothing fires after stop() or a reconnect.

Subclasses provide the venue specifics: URL, subscribe message, payload parsing and the
price range they accept.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

import structlog
import websockets

from skewmarket.ingestion.backoff import ReconnectBudget
from skewmarket.models import ConnectionStatus, FeedSnapshot, PriceDirection, PriceUpdate

log = structlog.get_logger(__name__)

SnapshotCallback = Callable[[FeedSnapshot], None]
# connect(url, **kwargs) -> async context manager yielding an object with send() and async iteration
ConnectFactory = Callable[..., Any]


class PriceFeedConnector(ABC):
    """Base class for streaming price feeds (Polymarket odds, Binance spot, ...).

    Must be started from inside a running event loop. `stop()` is synchronous and leaves no
    timers or tasks scheduled; `aclose()` additionally waits for the socket tasks to finish.
    """

    name: str = "feed"
    requires_keys: bool = False

    def __init__(
        self,
        url: str,
        *,
        keys: Iterable[str] | None = None,
        max_keys: int = 500,
        initial_delay_sec: float = 0.5,
        flush_interval_sec: float = 0.2,
        direction_ttl_sec: float = 1.5,
        ping_interval_sec: float | None = None,
        health_check_interval_sec: float | None = None,
        health_timeout_sec: float | None = None,
        reconnect_base_delay_sec: float = 1.0,
        reconnect_max_delay_sec: float = 30.0,
        reconnect_max_attempts: int = 10,
        connect: ConnectFactory | None = None,
    ):
        self.url = url
        self.max_keys = max_keys
        self.initial_delay_sec = initial_delay_sec
        self.flush_interval_sec = flush_interval_sec
        self.direction_ttl_sec = direction_ttl_sec
        self.ping_interval_sec = ping_interval_sec
        self.health_check_interval_sec = health_check_interval_sec
        self.health_timeout_sec = health_timeout_sec
        self._connect = connect or websockets.connect
        self._budget = ReconnectBudget(
            base_delay=reconnect_base_delay_sec,
            max_delay=reconnect_max_delay_sec,
            max_attempts=reconnect_max_attempts,
        )

        self._keys: tuple[str, ...] = self._clean_keys(keys or ())
        self._prices: dict[str, float] = {}
        self._directions: dict[str, PriceDirection] = {}
        self._status = ConnectionStatus.DISCONNECTED
        self._snapshot = FeedSnapshot()
        self._subscribers: list[SnapshotCallback] = []
        self._message_count = 0
        self._last_message_at = 0.0

        self._running = False
        self._generation = 0
        self._ws: Any = None
        self._reader_task: asyncio.Task | None = None
        self._keepalive_task: asyncio.Task | None = None
        self._connect_handle: asyncio.TimerHandle | None = None
        self._flush_handle: asyncio.TimerHandle | None = None
        self._health_handle: asyncio.TimerHandle | None = None
        self._direction_handles: dict[str, asyncio.TimerHandle] = {}

    # Venue specifics

    def connect_url(self) -> str:
        return self.url

    def subscribe_message(self) -> str | None:
        """Text frame sent right after the socket opens; None for URL-subscribed streams."""
        return None

    @abstractmethod
    def parse_updates(self, payload: Any) -> list[PriceUpdate]:
        """Extract price updates from one decoded JSON message."""
        ...

    @abstractmethod
    def accepts_price(self, price: float) -> bool:
        ...

    # Public state

    @property
    def keys(self) -> tuple[str, ...]:
        return self._keys

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def snapshot(self) -> FeedSnapshot:
        return self._snapshot

    @property
    def prices(self) -> Mapping[str, float]:
        return self._snapshot.prices

    @property
    def directions(self) -> Mapping[str, PriceDirection]:
        return self._snapshot.directions

    @property
    def reconnect_attempts(self) -> int:
        return self._budget.attempts

    @property
    def running(self) -> bool:
        return self._running

    def status_info(self) -> dict[str, Any]:
        return {
            "feed": self.name,
            "status": self._status.value,
            "keys": len(self._keys),
            "prices": len(self._snapshot.prices),
            "messages": self._message_count,
            "reconnect_attempts": self._budget.attempts,
            "last_update": self._snapshot.last_update.isoformat() if self._snapshot.last_update else None,
        }

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Call `callback(snapshot)` on every publish. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # Lifecycle

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._budget.reset()
        log.info("feed_starting", feed=self.name, keys=len(self._keys))
        self._schedule_connect(self.initial_delay_sec)

    def stop(self) -> None:
        """Tear down the connection and every timer. Later socket callbacks are discarded."""
        was_running = self._running
        self._running = False
        self._teardown_connection()
        self._cancel_connect()
        self._cancel_flush()
        self._clear_directions()
        self._status = ConnectionStatus.DISCONNECTED
        self._snapshot = FeedSnapshot(
            prices=self._snapshot.prices,
            status=ConnectionStatus.DISCONNECTED,
            last_update=self._snapshot.last_update,
            message_count=self._message_count,
        )
        if was_running:
            log.info("feed_stopped", feed=self.name)

    async def aclose(self) -> None:
        tasks = [t for t in (self._reader_task, self._keepalive_task) if t is not None]
        self.stop()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def restart(self) -> None:
        """Start over with a fresh reconnect budget, e.g. after the feed gave up with ERROR."""
        self.stop()
        self.start()

    def set_keys(self, keys: Iterable[str]) -> None:
        """Replace the subscribed keys (capped at max_keys).

        Only a change in the number of keys forces a reconnect; a same-size replacement is
        picked up by the next (re)subscribe.
        """
        new_keys = self._clean_keys(keys)
        count_changed = len(new_keys) != len(self._keys)
        self._keys = new_keys
        if not self._running or not count_changed:
            return
        log.info("feed_keys_changed", feed=self.name, keys=len(new_keys))
        self._teardown_connection()
        self._budget.reset()
        if self.requires_keys and not new_keys:
            self._set_status(ConnectionStatus.DISCONNECTED)
        else:
            self._set_status(ConnectionStatus.CONNECTING)
        self._schedule_connect(self.initial_delay_sec)

    def _clean_keys(self, keys: Iterable[str]) -> tuple[str, ...]:
        unique = dict.fromkeys(str(k) for k in keys if k)
        return tuple(unique)[: self.max_keys]

    # Connection

    def _is_current(self, generation: int) -> bool:
        return self._running and generation == self._generation

    def _schedule_connect(self, delay: float) -> None:
        self._cancel_connect()
        loop = asyncio.get_running_loop()
        self._connect_handle = loop.call_later(delay, self._open)

    def _cancel_connect(self) -> None:
        if self._connect_handle is not None:
            self._connect_handle.cancel()
            self._connect_handle = None

    def _open(self) -> None:
        self._connect_handle = None
        if not self._running:
            return
        self._teardown_connection()
        if self.requires_keys and not self._keys:
            self._set_status(ConnectionStatus.DISCONNECTED)
            return
        self._set_status(ConnectionStatus.CONNECTING)
        generation = self._generation
        self._reader_task = asyncio.get_running_loop().create_task(self._run_connection(generation))

    def _teardown_connection(self) -> None:
        """Drop the current socket and its tasks/timers. Bumps the generation."""
        self._generation += 1
        if self._health_handle is not None:
            self._health_handle.cancel()
            self._health_handle = None
        current = asyncio.current_task() if self._has_running_loop() else None
        for task in (self._keepalive_task, self._reader_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._keepalive_task = None
        self._reader_task = None
        self._ws = None

    @staticmethod
    def _has_running_loop() -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    async def _run_connection(self, generation: int) -> None:
        url = self.connect_url()
        try:
            async with self._connect(url, ping_interval=20, ping_timeout=20, close_timeout=5) as ws:
                if not self._is_current(generation):
                    return
                await self._on_open(ws, generation)
                async for raw in ws:
                    if not self._is_current(generation):
                        return
                    self._on_raw_message(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._is_current(generation):
                log.warning("ws_error", feed=self.name, error=str(e))
        if self._is_current(generation):
            self._on_close()

    async def _on_open(self, ws: Any, generation: int) -> None:
        loop = asyncio.get_running_loop()
        self._ws = ws
        self._budget.reset()
        self._last_message_at = loop.time()
        self._set_status(ConnectionStatus.CONNECTED)
        log.info("ws_connected", feed=self.name, url=self.connect_url(), keys=len(self._keys))

        message = self.subscribe_message()
        if message is not None:
            await ws.send(message)
            log.info("ws_subscribed", feed=self.name, keys=len(self._keys))

        if self.ping_interval_sec:
            self._keepalive_task = loop.create_task(self._keepalive(ws, generation))
        if self.health_check_interval_sec and self.health_timeout_sec:
            self._arm_health_check(generation)

    def _on_close(self) -> None:
        self._teardown_connection()
        self._cancel_flush()
        self._clear_directions()
        if self._budget.exhausted:
            log.error("ws_max_retries_reached", feed=self.name, attempts=self._budget.attempts)
            self._set_status(ConnectionStatus.ERROR)
            return
        delay = self._budget.next_delay()
        log.info("ws_reconnect_scheduled", feed=self.name, delay=delay, attempt=self._budget.attempts)
        self._set_status(ConnectionStatus.CONNECTING)
        self._schedule_connect(delay)

    async def _keepalive(self, ws: Any, generation: int) -> None:
        while True:
            await asyncio.sleep(self.ping_interval_sec)
            if not self._is_current(generation):
                return
            try:
                await ws.send("PING")
            except Exception as e:
                # the reader sees the same failure and handles the reconnect
                log.debug("ws_ping_failed", feed=self.name, error=str(e))
                return

    def _arm_health_check(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        self._health_handle = loop.call_later(self.health_check_interval_sec, self._check_health, generation)

    def _check_health(self, generation: int) -> None:
        self._health_handle = None
        if not self._is_current(generation):
            return
        silent_for = asyncio.get_running_loop().time() - self._last_message_at
        if silent_for > self.health_timeout_sec:
            log.warning("ws_stale", feed=self.name, silent_sec=round(silent_for, 1))
            self._open()
            return
        self._arm_health_check(generation)

    # Messages

    def _on_raw_message(self, raw: str | bytes) -> None:
        self._last_message_at = asyncio.get_running_loop().time()
        self._message_count += 1
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            # PONG and other plain-text frames
            return
        applied = 0
        try:
            for update in self.parse_updates(payload):
                if self.accepts_price(update.price):
                    self._apply(update)
                    applied += 1
        except (TypeError, ValueError, AttributeError) as e:
            # a malformed frame is dropped; the connection stays up
            log.warning("ws_bad_message", feed=self.name, error=str(e))
        if applied:
            self._schedule_flush()

    def _apply(self, update: PriceUpdate) -> None:
        previous = self._prices.get(update.key)
        self._prices[update.key] = update.price
        if previous is None or previous == update.price:
            return
        self._directions[update.key] = PriceDirection.UP if update.price > previous else PriceDirection.DOWN
        handle = self._direction_handles.pop(update.key, None)
        if handle is not None:
            handle.cancel()
        loop = asyncio.get_running_loop()
        self._direction_handles[update.key] = loop.call_later(
            self.direction_ttl_sec, self._expire_direction, update.key
        )

    def _expire_direction(self, key: str) -> None:
        self._direction_handles.pop(key, None)
        if self._directions.pop(key, None) is not None and self._running:
            self._schedule_flush()

    def _clear_directions(self) -> None:
        for handle in self._direction_handles.values():
            handle.cancel()
        self._direction_handles.clear()
        self._directions.clear()

    # Publishing

    def _schedule_flush(self) -> None:
        if self._flush_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._flush_handle = loop.call_later(self.flush_interval_sec, self._flush)

    def _cancel_flush(self) -> None:
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None

    def _flush(self) -> None:
        self._flush_handle = None
        if self._running:
            self._publish()

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        self._status = status
        self._publish()

    def _publish(self) -> None:
        """Copy the live tables into a new immutable snapshot and hand it to subscribers."""
        self._cancel_flush()
        self._snapshot = FeedSnapshot(
            prices=MappingProxyType(dict(self._prices)),
            directions=MappingProxyType(dict(self._directions)),
            status=self._status,
            last_update=datetime.now(timezone.utc),
            message_count=self._message_count,
        )
        for callback in list(self._subscribers):
            callback(self._snapshot)
