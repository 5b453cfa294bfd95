"""AlphaEntry, AlphaStats - persisted edge ledger records."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class AlphaEntry(BaseModel):
    """One detected mispricing, tracked from first observation to resolution.

    Serialized with camelCase keys so a ledger exported from the browser build loads as-is.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    title: str = Field(
        "Unknown",
        validation_alias=AliasChoices("eventTitle", "title"),
        serialization_alias="eventTitle",
    )
    detected_at: datetime
    edge_percent: float
    edge_type: str | None = None
    mode: str | None = None
    yes_price: float = 0.5
    no_price: float = 0.5
    current_yes_price: float = 0.5
    last_updated: datetime
    resolved: bool = False
    resolved_at: datetime | None = None
    profit: float | None = None
    slug: str = ""

    @field_validator("detected_at", "last_updated", "resolved_at")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_record(self) -> dict:
        """JSON-ready dict in the persisted (camelCase) layout."""
        return self.model_dump(mode="json", by_alias=True)


class AlphaStats(BaseModel):
    total_edges: int = 0
    resolved_count: int = 0
    win_rate: float = 0.0
    avg_resolution_days: float = 0.0
    total_theoretical_profit: float = 0.0
