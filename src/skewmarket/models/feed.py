"""Price feed state - connection status, direction tags, published snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class PriceDirection(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class PriceUpdate:
    """One (feed key, price) pair extracted from a feed message."""

    key: str
    price: float


def _empty() -> Mapping:
    return MappingProxyType({})


@dataclass(frozen=True)
class FeedSnapshot:
    """Read-only view of a connector's state as of its last flush."""

    prices: Mapping[str, float] = field(default_factory=_empty)
    directions: Mapping[str, PriceDirection] = field(default_factory=_empty)
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    last_update: datetime | None = None
    message_count: int = 0
