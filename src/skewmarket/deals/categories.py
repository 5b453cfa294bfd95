"""Broad categories for events, resolved from Gamma tags."""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from skewmarket.models import MarketEvent

# Display order; only these appear as category filters
CATEGORY_ORDER = (
    "Politics",
    "Crypto",
    "Sports",
    "Culture",
    "Finance",
    "Tech",
    "Business",
    "World",
    "Economy",
    "Science",
)

# Granular tag label -> parent category, so events without a broad tag still get one
TAG_TO_CATEGORY = {
    "Trump": "Politics",
    "Trump Presidency": "Politics",
    "U.S. Politics": "Politics",
    "Congress": "Politics",
    "Cabinet": "Politics",
    "house": "Politics",
    "us government": "Politics",
    "Immigration": "Politics",
    "Immigration/Border": "Politics",
    "Courts": "Politics",
    "DOGE": "Politics",
    "Global Elections": "Politics",
    "abortion": "Politics",
    "Geopolitics": "World",
    "nato": "World",
    "Trade War": "World",
    "Ukraine": "World",
    "Foreign Policy": "World",
    "russia": "World",
    "China": "World",
    "India": "World",
    "Brazil": "World",
    "France": "World",
    "eu": "World",
    "uk": "World",
    "Starmer": "World",
    "Macron": "World",
    "putin": "World",
    "zelensky": "World",
    "Trump-Zelenskyy": "World",
    "Trump-Putin": "World",
    "Security Guarantee": "World",
    "NFL": "Sports",
    "NFL Playoffs": "Sports",
    "Super Bowl": "Sports",
    "Super Bowl LX": "Sports",
    "Soccer": "Sports",
    "Music": "Culture",
    "Celebrities": "Culture",
    "Taylor Swift": "Culture",
    "Creators": "Culture",
    "video games": "Culture",
    "GTA VI": "Culture",
    "All-In": "Culture",
    "Epstein": "Culture",
    "Stocks": "Finance",
    "IPOs": "Finance",
    "MicroStrategy": "Finance",
    "Macro Indicators": "Economy",
    "GDP": "Economy",
    "deficit": "Economy",
    "budget": "Economy",
    "exchange": "Crypto",
    "balance": "Crypto",
    "bitboy": "Crypto",
}

MIN_EVENTS_PER_CATEGORY = 2


def event_categories(event: MarketEvent) -> list[str]:
    """Categories of one event, in tag order, without duplicates."""
    found: dict[str, None] = {}
    for tag in event.tags:
        label = tag.label
        if not label:
            continue
        if label in CATEGORY_ORDER:
            found[label] = None
        elif label in TAG_TO_CATEGORY:
            found[TAG_TO_CATEGORY[label]] = None
    return list(found)


def extract_categories(events: Iterable[MarketEvent], min_events: int = MIN_EVENTS_PER_CATEGORY) -> list[str]:
    """Categories carried by at least `min_events` events, in display order."""
    counts: Counter[str] = Counter()
    for event in events:
        counts.update(event_categories(event))
    return [c for c in CATEGORY_ORDER if counts[c] >= min_events]
