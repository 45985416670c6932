# stockpulse/core/base.py
"""Interfaces of the external collaborators the pipelines talk to."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from stockpulse.models.schema import Alert, Quote, RawArticle, Recipient


class ExternalService(ABC):
    """Anything that needs credentials before it can be called."""

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when a required credential is missing."""


class QuoteSource(ExternalService):
    @abstractmethod
    async def get_quote(self, symbol: str) -> Quote:
        """Return a fresh quote or raise UpstreamFetchError."""


class NewsSource(ExternalService):
    @abstractmethod
    async def get_company_news(self, symbol: str, from_date: date, to_date: date) -> List[RawArticle]:
        """Candidate articles for one symbol, newest first."""

    @abstractmethod
    async def get_general_news(self) -> List[RawArticle]:
        """The undifferentiated market feed, newest first."""


class ReasoningService(ExternalService):
    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Return free-form text for a prompt or raise UpstreamFetchError."""


class MailTransport(ExternalService):
    @abstractmethod
    async def send(self, recipient: str, subject: str, html_body: str, text_body: str,
                   sender_name: Optional[str] = None) -> None:
        """Deliver one message; raise on failure."""


class AlertStore(ABC):
    @abstractmethod
    def list_alerts(self, user_id: Optional[str] = None) -> List[Alert]:
        ...

    @abstractmethod
    def find_pending(self) -> List[Alert]:
        ...

    @abstractmethod
    def try_mark_triggered(self, alert_id: int) -> bool:
        """True iff this call performed the pending -> triggered transition."""


class UserDirectory(ABC):
    @abstractmethod
    def get_user(self, user_id: str) -> Optional[Recipient]:
        ...

    @abstractmethod
    def digest_recipients(self) -> List[Recipient]:
        ...

    @abstractmethod
    def tracked_symbols(self, user_id: str) -> List[str]:
        ...
