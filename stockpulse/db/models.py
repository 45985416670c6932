# stockpulse/db/models.py
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, String

from stockpulse.db.database import Base


def _now():
    return datetime.now(timezone.utc)


class AlertRow(Base):
    __tablename__ = "alerts"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    symbol = Column(String, nullable=False)
    company = Column(String, nullable=False, default="")
    kind = Column(String, nullable=False)        # "above" | "below"
    target_price = Column(Float, nullable=False)
    triggered = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    triggered_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_alerts_user_symbol_triggered", "user_id", "symbol", "triggered"),)


class UserRow(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True)
    email = Column(String, nullable=True, index=True)
    name = Column(String, nullable=True)


class WatchlistRow(Base):
    __tablename__ = "watchlist"
    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    symbol = Column(String, nullable=False)
    company = Column(String, nullable=False, default="")
    added_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class UserPreferencesRow(Base):
    __tablename__ = "user_preferences"
    user_id = Column(String, primary_key=True)
    email_notifications = Column(Boolean, nullable=False, default=True)
    daily_news_enabled = Column(Boolean, nullable=False, default=True)
