# stockpulse/models/schema.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AlertKind(str, Enum):
    ABOVE = "above"
    BELOW = "below"


class Alert(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    symbol: str
    company: str = ""
    kind: AlertKind
    target_price: float = Field(gt=0)
    triggered: bool = False
    created_at: Optional[datetime] = None
    triggered_at: Optional[datetime] = None


class AlertCreate(BaseModel):
    user_id: str
    symbol: str
    company: str
    kind: AlertKind
    target_price: float = Field(gt=0)

    @field_validator("symbol")
    @classmethod
    def _upper(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("symbol is required")
        return v


class Quote(BaseModel):
    """Price snapshot. ``current == 0`` means the provider had no data."""
    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    current: float = Field(default=0.0, alias="c")
    high: float = Field(default=0.0, alias="h")
    low: float = Field(default=0.0, alias="l")
    open: float = Field(default=0.0, alias="o")
    previous_close: float = Field(default=0.0, alias="pc")

    @field_validator("current", "high", "low", "open", "previous_close", mode="before")
    @classmethod
    def _none_is_zero(cls, v):
        return 0.0 if v is None else v

    @property
    def has_data(self) -> bool:
        return self.current != 0


class RawArticle(BaseModel):
    """News item as delivered by the news source (Finnhub field names accepted)."""
    model_config = ConfigDict(populate_by_name=True)

    id: int = 0
    headline: str = ""
    summary: str = ""
    url: str = ""
    source: str = ""
    published_at: int = Field(default=0, alias="datetime")
    related: Optional[str] = None

    @field_validator("headline", "summary", "url", "source", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return "" if v is None else v

    @field_validator("id", "published_at", mode="before")
    @classmethod
    def _none_is_zero(cls, v):
        return 0 if v is None else v

    def is_valid(self) -> bool:
        return bool(self.headline.strip() and self.summary.strip() and self.url.strip() and self.published_at)


class SelectedArticle(RawArticle):
    selection_round: Optional[int] = None
    symbol: Optional[str] = None


class SentimentResult(BaseModel):
    sentiment: Literal["bullish", "bearish", "neutral"]
    score: int = Field(ge=0, le=100)
    summary: str


class Recipient(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str = "User"


class UserCreatedEvent(BaseModel):
    email: str
    name: str
