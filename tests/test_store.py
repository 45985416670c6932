"""Tests for the SQLAlchemy alert store and user directory (in-memory SQLite)."""
from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockpulse.core.errors import DuplicateAlertError
from stockpulse.db.database import Base
from stockpulse.db.models import AlertRow, UserPreferencesRow, UserRow, WatchlistRow
from stockpulse.db.store import SqlAlertStore, SqlUserDirectory
from stockpulse.models.schema import AlertCreate, AlertKind


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


def _create(store, user="u1", symbol="aapl", kind=AlertKind.ABOVE, target=150.0):
    return store.create_alert(AlertCreate(user_id=user, symbol=symbol, company="Apple Inc.", kind=kind, target_price=target))


class TestAlertStore:
    def test_create_normalises_symbol(self, session_factory):
        alert = _create(SqlAlertStore(session_factory))
        assert alert.symbol == "AAPL"
        assert alert.triggered is False
        assert alert.created_at is not None

    def test_one_pending_alert_per_user_and_symbol(self, session_factory):
        store = SqlAlertStore(session_factory)
        _create(store)
        with pytest.raises(DuplicateAlertError):
            _create(store, symbol="AAPL", kind=AlertKind.BELOW, target=100.0)
        # other users and other symbols are unaffected
        _create(store, user="u2")
        _create(store, symbol="MSFT")

    def test_new_alert_allowed_after_trigger(self, session_factory):
        store = SqlAlertStore(session_factory)
        first = _create(store)
        assert store.try_mark_triggered(first.id) is True
        second = _create(store)
        assert second.id != first.id

    def test_try_mark_triggered_is_compare_and_set(self, session_factory):
        store = SqlAlertStore(session_factory)
        alert = _create(store)
        assert store.try_mark_triggered(alert.id) is True
        assert store.try_mark_triggered(alert.id) is False

        stored = store.list_alerts("u1")[0]
        assert stored.triggered is True
        assert stored.triggered_at is not None
        assert store.find_pending() == []

    def test_try_mark_triggered_unknown_id(self, session_factory):
        assert SqlAlertStore(session_factory).try_mark_triggered(999) is False

    def test_find_pending_skips_malformed_rows(self, session_factory):
        store = SqlAlertStore(session_factory)
        _create(store)
        with session_factory() as db:
            db.add(AlertRow(user_id="u9", symbol="BAD", company="", kind="sideways", target_price=1.0))
            db.commit()
        assert [a.symbol for a in store.find_pending()] == ["AAPL"]

    def test_delete_only_own_alert(self, session_factory):
        store = SqlAlertStore(session_factory)
        alert = _create(store)
        assert store.delete_alert(alert.id, "someone-else") is False
        assert store.delete_alert(alert.id, "u1") is True
        assert store.list_alerts() == []


class TestUserDirectory:
    @pytest.fixture
    def directory(self, session_factory):
        with session_factory() as db:
            db.add_all([
                UserRow(id="u1", email="alice@example.com", name="Alice"),
                UserRow(id="u2", email="bob@example.com", name="Bob"),
                UserRow(id="u3", email="carol@example.com", name="Carol"),
                UserRow(id="u4", email=None, name="NoMail"),
                UserRow(id="u5", email="dan@example.com", name=None),
                UserPreferencesRow(user_id="u2", daily_news_enabled=False),
                UserPreferencesRow(user_id="u3", daily_news_enabled=True, email_notifications=True),
                WatchlistRow(user_id="u1", symbol="MSFT"),
                WatchlistRow(user_id="u1", symbol="AAPL"),
            ])
            db.commit()
        return SqlUserDirectory(session_factory)

    def test_digest_recipients_respect_preferences(self, directory):
        assert [r.email for r in directory.digest_recipients()] == ["alice@example.com", "carol@example.com"]

    def test_get_user(self, directory):
        assert directory.get_user("u5").name == "User"
        assert directory.get_user("u4") is None
        assert directory.get_user("missing") is None

    def test_tracked_symbols_in_insertion_order(self, directory):
        assert directory.tracked_symbols("u1") == ["MSFT", "AAPL"]
        assert directory.tracked_symbols("u2") == []
