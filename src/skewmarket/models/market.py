"""MarketEvent, Market, Tag - Gamma event records as consumed by the normalizer."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Tag(BaseModel):
    """Gamma tag attached to an event (used for category resolution)."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    label: str | None = None
    slug: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        return str(v) if v is not None else None


class Market(BaseModel):
    """One sub-market of an event. Price fields stay raw; the normalizer decides validity."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = None
    question: str = ""
    group_item_title: str | None = Field(None, alias="groupItemTitle")
    outcomes: Any = None  # JSON string or list of labels
    outcome_prices: Any = Field(None, alias="outcomePrices")  # JSON string or list
    clob_token_ids: list[str] = Field(default_factory=list, alias="clobTokenIds")
    closed: bool | None = None
    active: bool | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        return str(v) if v is not None else None

    @field_validator("question", mode="before")
    @classmethod
    def _question_str(cls, v: Any) -> Any:
        return v if isinstance(v, str) else ""

    @field_validator("clob_token_ids", mode="before")
    @classmethod
    def _decode_token_ids(cls, v: Any) -> list[str]:
        """Gamma sends clobTokenIds as a JSON-encoded string; malformed input means no keys."""
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError:
                return []
        if not isinstance(v, list):
            return []
        return [str(t) for t in v if isinstance(t, (str, int)) and str(t)]

    def outcome_labels(self) -> list[str]:
        raw = self.outcomes
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError:
                return []
        if not isinstance(raw, list):
            return []
        return [str(o) for o in raw]


class MarketEvent(BaseModel):
    """Gamma event grouping one or more markets."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = None
    title: str = ""
    slug: str | None = None
    image: str | None = None
    category: str | None = None
    tags: list[Tag] = Field(default_factory=list)
    volume: float = 0.0
    liquidity: float = 0.0
    end_date: str | None = Field(None, alias="endDate")
    closed: bool | None = None
    active: bool | None = None
    markets: list[Market] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        return str(v) if v is not None else None

    @field_validator("title", mode="before")
    @classmethod
    def _title_str(cls, v: Any) -> Any:
        return v if isinstance(v, str) else ""

    @field_validator("slug", "end_date", mode="before")
    @classmethod
    def _optional_str(cls, v: Any) -> Any:
        return v if isinstance(v, str) and v else None

    @field_validator("volume", "liquidity", mode="before")
    @classmethod
    def _number_or_zero(cls, v: Any) -> float:
        try:
            return float(v) if v is not None else 0.0
        except (TypeError, ValueError):
            return 0.0

    @field_validator("tags", "markets", mode="before")
    @classmethod
    def _list_of_records(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, (dict, BaseModel))]

    @property
    def key(self) -> str | None:
        """Identity used by the ledger and the token map: id, else slug."""
        return self.id or self.slug

    @property
    def display_title(self) -> str:
        if self.title:
            return self.title
        return self.markets[0].question if self.markets else ""
