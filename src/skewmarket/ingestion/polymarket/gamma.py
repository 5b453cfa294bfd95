"""Polymarket Gamma API client - active event discovery."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from skewmarket.exceptions import UpstreamError
from skewmarket.models import MarketEvent

log = structlog.get_logger(__name__)

GAMMA_API_BASE = "https://gamma-api.polymarket.com"


def events_params(limit: int = 200, now: datetime | None = None) -> dict[str, Any]:
    """Query for open, unarchived events that have not ended yet."""
    now = now or datetime.now(timezone.utc)
    return {
        "active": "true",
        "closed": "false",
        "archived": "false",
        "end_date_min": now.isoformat().replace("+00:00", "Z"),
        "limit": limit,
    }


def parse_events(data: Any) -> list[MarketEvent]:
    """Event list from a Gamma body (a bare list or {"data": [...]}).

    Rows that fail model validation are logged and skipped. Any other body shape raises
    UpstreamError: an empty result would read as every event having left the feed.
    """
    if isinstance(data, dict):
        data = data.get("data")
    if not isinstance(data, list):
        raise UpstreamError("gamma", "unexpected response shape")
    events = []
    for row in data:
        if not isinstance(row, dict):
            continue
        try:
            events.append(MarketEvent.model_validate(row))
        except ValidationError as e:
            log.warning("skip_event", event_id=row.get("id"), error=str(e))
    return events


async def fetch_events(
    client: httpx.AsyncClient,
    base_url: str = GAMMA_API_BASE,
    limit: int = 200,
    now: datetime | None = None,
) -> list[MarketEvent]:
    """Fetch active events. Raises UpstreamError on transport errors, non-2xx, non-JSON or non-list bodies."""
    url = base_url.rstrip("/") + "/events"
    try:
        resp = await client.get(url, params=events_params(limit, now))
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPStatusError as e:
        raise UpstreamError("gamma", f"HTTP {e.response.status_code}", e.response.status_code) from e
    except httpx.HTTPError as e:
        raise UpstreamError("gamma", str(e) or type(e).__name__) from e
    except ValueError as e:
        raise UpstreamError("gamma", f"invalid JSON: {e}") from e
    events = parse_events(data)
    log.debug("gamma_events_fetched", count=len(events))
    return events
