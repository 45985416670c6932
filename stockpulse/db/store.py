# stockpulse/db/store.py
# SQLAlchemy-backed AlertStore and UserDirectory.

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import ValidationError
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from stockpulse.core.base import AlertStore, UserDirectory
from stockpulse.core.errors import DuplicateAlertError
from stockpulse.db.database import SessionLocal
from stockpulse.db.models import AlertRow, UserPreferencesRow, UserRow, WatchlistRow
from stockpulse.models.schema import Alert, AlertCreate, Recipient

logger = logging.getLogger(__name__)


def _to_alerts(rows) -> List[Alert]:
    out: List[Alert] = []
    for row in rows:
        try:
            out.append(Alert.model_validate(row))
        except ValidationError as e:
            logger.warning("Skipping malformed alert %s: %s", row.id, e.errors()[:1])
    return out


class SqlAlertStore(AlertStore):
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def create_alert(self, data: AlertCreate) -> Alert:
        """
        Insert a pending alert. A user may hold one pending alert per symbol;
        this is a read-then-write pre-check, not a storage constraint.
        """
        with self.session_factory() as db:
            existing = db.query(AlertRow).filter(
                AlertRow.user_id == data.user_id,
                AlertRow.symbol == data.symbol,
                AlertRow.triggered == False,  # noqa: E712
            ).first()
            if existing:
                raise DuplicateAlertError(data.user_id, data.symbol)
            row = AlertRow(
                user_id=data.user_id, symbol=data.symbol, company=data.company,
                kind=data.kind.value, target_price=data.target_price, triggered=False,
            )
            db.add(row); db.commit(); db.refresh(row)
            return Alert.model_validate(row)

    def list_alerts(self, user_id: Optional[str] = None) -> List[Alert]:
        with self.session_factory() as db:
            q = db.query(AlertRow)
            if user_id is not None:
                q = q.filter(AlertRow.user_id == user_id)
            return _to_alerts(q.order_by(AlertRow.created_at.desc(), AlertRow.id.desc()).all())

    def delete_alert(self, alert_id: int, user_id: str) -> bool:
        with self.session_factory() as db:
            n = db.query(AlertRow).filter(AlertRow.id == alert_id, AlertRow.user_id == user_id).delete()
            db.commit()
            return n > 0

    def find_pending(self) -> List[Alert]:
        with self.session_factory() as db:
            return _to_alerts(db.query(AlertRow).filter(AlertRow.triggered == False).all())  # noqa: E712

    def try_mark_triggered(self, alert_id: int) -> bool:
        stmt = (
            update(AlertRow)
            .where(AlertRow.id == alert_id, AlertRow.triggered == False)  # noqa: E712
            .values(triggered=True, triggered_at=datetime.now(timezone.utc))
        )
        with self.session_factory() as db:
            res = db.execute(stmt)
            db.commit()
            return res.rowcount == 1


class SqlUserDirectory(UserDirectory):
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def get_user(self, user_id: str) -> Optional[Recipient]:
        with self.session_factory() as db:
            row = db.get(UserRow, user_id)
            if row is None or not row.email:
                return None
            return Recipient(id=row.id, email=row.email, name=row.name or "User")

    def digest_recipients(self) -> List[Recipient]:
        """Users with an email and a name who have not opted out of the daily news."""
        with self.session_factory() as db:
            rows = (
                db.query(UserRow)
                .outerjoin(UserPreferencesRow, UserPreferencesRow.user_id == UserRow.id)
                .filter(UserRow.email.isnot(None), UserRow.email != "")
                .filter(UserRow.name.isnot(None), UserRow.name != "")
                .filter(or_(UserPreferencesRow.user_id.is_(None),
                            (UserPreferencesRow.daily_news_enabled == True)  # noqa: E712
                            & (UserPreferencesRow.email_notifications == True)))  # noqa: E712
                .order_by(UserRow.id)
                .all()
            )
            return [Recipient(id=r.id, email=r.email, name=r.name) for r in rows]

    def tracked_symbols(self, user_id: str) -> List[str]:
        with self.session_factory() as db:
            rows = db.query(WatchlistRow.symbol).filter(WatchlistRow.user_id == user_id).order_by(WatchlistRow.id).all()
            return [str(r[0]) for r in rows]
