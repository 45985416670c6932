"""In-memory stand-ins for the external collaborators."""
from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import Dict, List, Optional

import pytest

from stockpulse.core.base import AlertStore, MailTransport, NewsSource, QuoteSource, ReasoningService, UserDirectory
from stockpulse.core.errors import ConfigurationError
from stockpulse.models.schema import Alert, AlertKind, Quote, RawArticle, Recipient


def run(coro):
    return asyncio.run(coro)


def make_article(id: int, ts: int, headline: Optional[str] = None, url: Optional[str] = None,
                 summary: str = "summary", source: str = "Reuters") -> RawArticle:
    return RawArticle(
        id=id,
        headline=headline if headline is not None else f"headline {id}",
        summary=summary,
        url=url if url is not None else f"https://example.com/{id}",
        source=source,
        published_at=ts,
    )


def make_alert(id: int, symbol: str = "AAPL", kind: str = "above", target: float = 150.0,
               user_id: str = "u1", triggered: bool = False) -> Alert:
    return Alert(id=id, user_id=user_id, symbol=symbol, company=f"{symbol} Inc.",
                 kind=AlertKind(kind), target_price=target, triggered=triggered)


class FakeQuotes(QuoteSource):
    def __init__(self, prices: Dict[str, object], configured: bool = True):
        self.prices = prices
        self.configured = configured
        self.calls: List[str] = []

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("no quote key")

    async def get_quote(self, symbol: str) -> Quote:
        self.calls.append(symbol)
        value = self.prices.get(symbol, 0.0)
        if isinstance(value, Exception):
            raise value
        return Quote(symbol=symbol, current=value)


class FakeNews(NewsSource):
    def __init__(self, company: Optional[Dict[str, object]] = None, general: object = None,
                 configured: bool = True):
        self.company = company or {}
        self.general = general if general is not None else []
        self.configured = configured
        self.company_calls: List[str] = []
        self.general_calls = 0

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("no news key")

    async def get_company_news(self, symbol: str, from_date: date, to_date: date) -> List[RawArticle]:
        self.company_calls.append(symbol)
        value = self.company.get(symbol, [])
        if isinstance(value, Exception):
            raise value
        return list(value)

    async def get_general_news(self) -> List[RawArticle]:
        self.general_calls += 1
        if isinstance(self.general, Exception):
            raise self.general
        return list(self.general)


class FakeReasoning(ReasoningService):
    def __init__(self, reply: object = "", configured: bool = True):
        self.reply = reply
        self.configured = configured
        self.prompts: List[str] = []

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("no reasoning key")

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


class FakeMail(MailTransport):
    def __init__(self, fail_for: tuple = (), configured: bool = True, delay: float = 0.0):
        self.fail_for = set(fail_for)
        self.configured = configured
        self.delay = delay
        self.sent: List[dict] = []

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("no smtp credentials")

    async def send(self, recipient, subject, html_body, text_body, sender_name=None) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if recipient in self.fail_for:
            raise RuntimeError(f"smtp rejected {recipient}")
        self.sent.append({"to": recipient, "subject": subject, "html": html_body,
                          "text": text_body, "sender": sender_name})


class MemoryAlertStore(AlertStore):
    def __init__(self, alerts: List[Alert]):
        self.alerts = {a.id: a for a in alerts}
        self.commits: List[int] = []

    def list_alerts(self, user_id=None) -> List[Alert]:
        return [a for a in self.alerts.values() if user_id is None or a.user_id == user_id]

    def find_pending(self) -> List[Alert]:
        return [a for a in self.alerts.values() if not a.triggered]

    def try_mark_triggered(self, alert_id: int) -> bool:
        alert = self.alerts[alert_id]
        if alert.triggered:
            return False
        self.alerts[alert_id] = alert.model_copy(update={"triggered": True, "triggered_at": datetime.now()})
        self.commits.append(alert_id)
        return True


class MemoryUsers(UserDirectory):
    def __init__(self, users: Optional[List[Recipient]] = None,
                 watchlists: Optional[Dict[str, object]] = None):
        self.users = {u.id: u for u in (users or [])}
        self.watchlists = watchlists or {}

    def get_user(self, user_id: str) -> Optional[Recipient]:
        return self.users.get(user_id)

    def digest_recipients(self) -> List[Recipient]:
        return list(self.users.values())

    def tracked_symbols(self, user_id: str) -> List[str]:
        value = self.watchlists.get(user_id, [])
        if isinstance(value, Exception):
            raise value
        return list(value)


@pytest.fixture
def alice() -> Recipient:
    return Recipient(id="u1", email="alice@example.com", name="Alice")


@pytest.fixture
def bob() -> Recipient:
    return Recipient(id="u2", email="bob@example.com", name="Bob")
