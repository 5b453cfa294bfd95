"""NewsItem - one syndication-feed article."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class NewsItem(BaseModel):
    title: str
    link: str
    published_at: datetime | None = None
    source: str = ""
    description: str = ""
    category: str = "General"
    relevance: int = 0
