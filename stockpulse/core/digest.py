# stockpulse/core/digest.py
# Daily news digest: per recipient resolve tracked symbols, select up to six
# articles (general feed when the watchlist yields nothing), add sentiment
# lines, render and send. Each recipient is one isolated dispatch unit.

from __future__ import annotations

import asyncio
import html
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from stockpulse.core.base import UserDirectory
from stockpulse.core.config import settings
from stockpulse.core.errors import ConfigurationError
from stockpulse.core.news_rank import NewsAggregationEngine, clean_symbols
from stockpulse.core.notifications import NotificationDispatchPipeline, NotificationJob, RunSummary
from stockpulse.core.sentiment import SentimentExtractionEngine
from stockpulse.core.templates import TemplateKind
from stockpulse.models.schema import Recipient, SelectedArticle, SentimentResult

logger = logging.getLogger(__name__)

NO_NEWS = "No market news for your watchlist today."

SentimentMemo = Dict[str, "asyncio.Future[Optional[SentimentResult]]"]


def news_html(articles: List[SelectedArticle]) -> str:
    if not articles:
        return f'<p style="font-size:16px;">{NO_NEWS}</p>'
    rows = []
    for a in articles:
        source = f" <span style=\"color:#9CA3AF;\">({html.escape(a.source)})</span>" if a.source else ""
        rows.append(
            f'<li style="margin-bottom:12px;"><a href="{html.escape(a.url, quote=True)}" '
            f'style="color:#FDD458;">{html.escape(a.headline)}</a>{source}'
            f'<br><span style="font-size:14px;">{html.escape(a.summary)}</span></li>'
        )
    return '<ul style="padding-left:18px;">' + "".join(rows) + "</ul>"


def news_text(articles: List[SelectedArticle]) -> str:
    if not articles:
        return NO_NEWS
    return "\n".join(f"• {a.headline}" for a in articles)


def sentiment_html(results: Dict[str, SentimentResult]) -> str:
    if not results:
        return ""
    rows = "".join(
        f"<li><strong>{html.escape(sym)}</strong>: {r.sentiment.capitalize()} ({r.score}/100). "
        f"{html.escape(r.summary)}</li>"
        for sym, r in results.items()
    )
    return f'<h2 style="color:#FDD458;font-size:18px;">Sentiment</h2><ul style="padding-left:18px;">{rows}</ul>'


class DailyDigestFlow:
    def __init__(self, users: UserDirectory, news: NewsAggregationEngine,
                 dispatcher: NotificationDispatchPipeline,
                 sentiment: Optional[SentimentExtractionEngine] = None,
                 limit: int | None = None, sentiment_symbols: int | None = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.users = users
        self.news = news
        self.dispatcher = dispatcher
        self.sentiment = sentiment
        self.limit = settings.DIGEST_ARTICLE_LIMIT if limit is None else limit
        self.sentiment_symbols = settings.DIGEST_SENTIMENT_MAX_SYMBOLS if sentiment_symbols is None else sentiment_symbols
        self.clock = clock

    async def _safe_extract(self, symbol: str) -> Optional[SentimentResult]:
        try:
            return await self.sentiment.extract(symbol)
        except Exception as e:
            logger.warning("Sentiment failed for %s: %s", symbol, e)
            return None

    async def _sentiments(self, symbols: List[str], memo: SentimentMemo) -> Dict[str, SentimentResult]:
        """One extraction per distinct symbol per run, shared by all recipients."""
        if self.sentiment is None or self.sentiment_symbols <= 0:
            return {}
        picked = symbols[: self.sentiment_symbols]
        for sym in picked:
            if sym not in memo:
                memo[sym] = asyncio.ensure_future(self._safe_extract(sym))
        # shielded: a timed-out recipient must not cancel a result others share
        results = await asyncio.gather(*(asyncio.shield(memo[s]) for s in picked))
        return {s: r for s, r in zip(picked, results) if r is not None}

    async def build_job(self, recipient: Recipient, memo: SentimentMemo) -> NotificationJob:
        symbols = clean_symbols(await asyncio.to_thread(self.users.tracked_symbols, recipient.id))
        articles = await self.news.select_articles(symbols, self.limit)
        sentiments = await self._sentiments(symbols, memo)
        return NotificationJob(
            recipient_key=f"digest:{recipient.email}",
            recipient=recipient.email,
            template_kind=TemplateKind.DIGEST,
            substitutions={
                "name": html.escape(recipient.name or "there"),
                "date": self.clock().strftime("%A, %B %d, %Y"),
                "newsContent": news_html(articles),
                "newsText": news_text(articles),
                "sentimentContent": sentiment_html(sentiments),
            },
        )

    async def run(self) -> RunSummary:
        try:
            self.news.source.ensure_configured()
            self.dispatcher.ensure_configured()
        except ConfigurationError as e:
            logger.error("Daily digest aborted: %s", e)
            return RunSummary()

        try:
            recipients = await asyncio.to_thread(self.users.digest_recipients)
        except Exception as e:
            logger.error("Could not load digest recipients: %s", e)
            return RunSummary()
        if not recipients:
            logger.info("No users found for news email")
            return RunSummary()

        memo: SentimentMemo = {}
        summary = await self.dispatcher.run(
            recipients,
            build=lambda r: self.build_job(r, memo),
            key=lambda r: f"digest:{r.email}",
        )
        logger.info("Sent news to %d/%d users", summary.succeeded, len(recipients))
        return summary
