# stockpulse/core/orchestrator.py
# Entry points invoked by the scheduler, the CLI and the ops API. Every entry
# returns a summary and never raises; overlapping runs of one pipeline are
# skipped, not queued.

from __future__ import annotations

import asyncio
import html
import logging
import threading
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from stockpulse.core.alerts import AlertEvaluationEngine
from stockpulse.core.base import AlertStore, MailTransport, NewsSource, QuoteSource, ReasoningService, UserDirectory
from stockpulse.core.config import settings
from stockpulse.core.digest import DailyDigestFlow
from stockpulse.core.errors import ConfigurationError
from stockpulse.core.finnhub import FinnhubClient
from stockpulse.core.llm import ChatReasoningService
from stockpulse.core.mailer import SmtpMailTransport
from stockpulse.core.market import build_quote_source
from stockpulse.core.news import FinnhubNewsSource
from stockpulse.core.news_rank import NewsAggregationEngine
from stockpulse.core.notifications import AlertRunSummary, NotificationDispatchPipeline, NotificationJob, RunSummary
from stockpulse.core.sentiment import SentimentExtractionEngine
from stockpulse.core.templates import TemplateKind
from stockpulse.db.store import SqlAlertStore, SqlUserDirectory
from stockpulse.models.schema import SentimentResult

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=RunSummary)

PRICE_ALERTS = "price-alerts"
DAILY_DIGEST = "daily-digest"

WELCOME_INTRO = (
    f"Welcome to {settings.APP_NAME}! You now have access to real-time stock tracking, price alerts, "
    "portfolio management, and AI-powered insights. Start by adding your favorite stocks to your watchlist."
)


class PipelineOrchestrator:
    def __init__(self, store: AlertStore, users: UserDirectory, quotes: QuoteSource,
                 news_source: NewsSource, reasoning: ReasoningService, mail: MailTransport,
                 digest_sentiment: bool | None = None):
        self.dispatcher = NotificationDispatchPipeline(mail)
        self.news = NewsAggregationEngine(news_source)
        self.sentiment = SentimentExtractionEngine(self.news, reasoning)
        self.alerts = AlertEvaluationEngine(store, users, quotes, self.dispatcher)
        use_sentiment = settings.DIGEST_SENTIMENT_ENABLED if digest_sentiment is None else digest_sentiment
        self.digest = DailyDigestFlow(users, self.news, self.dispatcher,
                                      sentiment=self.sentiment if use_sentiment else None)
        self._leases: Dict[str, threading.Lock] = {PRICE_ALERTS: threading.Lock(), DAILY_DIGEST: threading.Lock()}

    async def _exclusive(self, name: str, run: Callable[[], Awaitable[S]], empty: Callable[[], S]) -> S:
        lease = self._leases[name]
        if not lease.acquire(blocking=False):
            logger.warning("%s: previous run still in flight, skipping", name)
            skipped = empty()
            skipped.skipped = True
            return skipped
        try:
            return await run()
        except Exception:
            logger.exception("%s: run failed", name)
            return empty()
        finally:
            lease.release()

    async def run_price_alerts(self) -> AlertRunSummary:
        return await self._exclusive(PRICE_ALERTS, self.alerts.evaluate_all_pending, AlertRunSummary)

    async def run_daily_digest(self) -> RunSummary:
        return await self._exclusive(DAILY_DIGEST, self.digest.run, RunSummary)

    async def send_welcome(self, email: str, name: str) -> RunSummary:
        try:
            self.dispatcher.ensure_configured()
        except ConfigurationError as e:
            logger.error("Welcome mail aborted: %s", e)
            return RunSummary()
        job = NotificationJob(
            recipient_key=f"welcome:{email}",
            recipient=email,
            template_kind=TemplateKind.WELCOME,
            substitutions={"name": html.escape(name or "there"), "intro": WELCOME_INTRO},
        )
        return await self.dispatcher.dispatch([job])

    async def sentiment_for(self, symbol: str) -> Optional[SentimentResult]:
        return await self.sentiment.extract(symbol)

    # scheduler threads have no running loop of their own
    def run_price_alerts_blocking(self) -> AlertRunSummary:
        return asyncio.run(self.run_price_alerts())

    def run_daily_digest_blocking(self) -> RunSummary:
        return asyncio.run(self.run_daily_digest())


def build_orchestrator() -> PipelineOrchestrator:
    """Construct the process-wide clients once and hand them to the pipelines."""
    finnhub = FinnhubClient()
    return PipelineOrchestrator(
        store=SqlAlertStore(),
        users=SqlUserDirectory(),
        quotes=build_quote_source(finnhub),
        news_source=FinnhubNewsSource(finnhub),
        reasoning=ChatReasoningService(),
        mail=SmtpMailTransport(),
    )
