# stockpulse/core/alerts.py
# Evaluates pending price alerts: one quote per distinct symbol, a
# compare-and-set commit per crossing alert, then one mail per commit.

from __future__ import annotations

import asyncio
import html
import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from stockpulse.core.base import AlertStore, QuoteSource, UserDirectory
from stockpulse.core.errors import ConfigurationError, RecipientNotFound
from stockpulse.core.notifications import AlertRunSummary, NotificationDispatchPipeline, NotificationJob
from stockpulse.core.templates import TemplateKind
from stockpulse.models.schema import Alert, AlertKind, Quote

logger = logging.getLogger(__name__)

Fired = Tuple[Alert, Quote]


def should_trigger(alert: Alert, price: float) -> bool:
    if alert.kind == AlertKind.ABOVE:
        return price >= alert.target_price
    if alert.kind == AlertKind.BELOW:
        return price <= alert.target_price
    return False


def group_by_symbol(alerts: Iterable[Alert]) -> Dict[str, List[Alert]]:
    groups: Dict[str, List[Alert]] = defaultdict(list)
    for a in alerts:
        groups[a.symbol.strip().upper()].append(a)
    return dict(groups)


def _money(v: float) -> str:
    return f"${v:,.2f}"


class AlertEvaluationEngine:
    def __init__(self, store: AlertStore, users: UserDirectory, quotes: QuoteSource,
                 dispatcher: NotificationDispatchPipeline,
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.users = users
        self.quotes = quotes
        self.dispatcher = dispatcher
        self.clock = clock

    async def _commit(self, alert: Alert) -> Optional[bool]:
        """True if this run won the transition, False if it lost, None on a store error."""
        try:
            return await asyncio.to_thread(self.store.try_mark_triggered, alert.id)
        except Exception as e:
            logger.warning("Store error marking alert %s, retrying next cycle: %s", alert.id, e)
            return None

    async def check_symbol(self, symbol: str, alerts: List[Alert]) -> List[Fired]:
        """Quote ``symbol`` once and commit every crossing alert of the group."""
        try:
            quote = await self.quotes.get_quote(symbol)
        except Exception as e:
            # transient: the next scheduled cycle retries this symbol
            logger.warning("Quote failed for %s (%d alerts skipped): %s", symbol, len(alerts), e)
            return []
        if not quote.has_data:
            logger.info("No price data for %s, skipping %d alerts", symbol, len(alerts))
            return []

        fired: List[Fired] = []
        for alert in alerts:
            if not should_trigger(alert, quote.current):
                continue
            won = await self._commit(alert)
            if won is None:
                continue
            if not won:
                logger.info("Alert %s already handled, not notifying", alert.id)
                continue
            logger.info("Alert %s triggered: %s %s %.2f (price %.2f)",
                        alert.id, symbol, alert.kind.value, alert.target_price, quote.current)
            fired.append((alert, quote))
        return fired

    async def build_job(self, fired: Fired) -> NotificationJob:
        alert, quote = fired
        user = await asyncio.to_thread(self.users.get_user, alert.user_id)
        if user is None or not user.email:
            raise RecipientNotFound(f"no email for user {alert.user_id}")
        kind = TemplateKind.ALERT_ABOVE if alert.kind == AlertKind.ABOVE else TemplateKind.ALERT_BELOW
        return NotificationJob(
            recipient_key=f"alert:{alert.id}",
            recipient=user.email,
            template_kind=kind,
            substitutions={
                "symbol": html.escape(alert.symbol),
                "company": html.escape(alert.company or alert.symbol),
                "targetPrice": _money(alert.target_price),
                "currentPrice": _money(quote.current),
                "timestamp": self.clock().strftime("%b %d, %Y, %I:%M %p"),
            },
        )

    async def evaluate_all_pending(self) -> AlertRunSummary:
        try:
            self.quotes.ensure_configured()
            self.dispatcher.ensure_configured()
        except ConfigurationError as e:
            logger.error("Alert evaluation aborted: %s", e)
            return AlertRunSummary()

        try:
            pending = await asyncio.to_thread(self.store.find_pending)
        except Exception as e:
            logger.error("Could not load pending alerts: %s", e)
            return AlertRunSummary()
        if not pending:
            logger.info("No pending alerts to check")
            return AlertRunSummary()

        groups = group_by_symbol(pending)
        results = await asyncio.gather(*(self.check_symbol(s, a) for s, a in groups.items()))
        fired = [f for group in results for f in group]

        sent = await self.dispatcher.run(fired, build=self.build_job, key=lambda f: f"alert:{f[0].id}")
        summary = AlertRunSummary(
            attempted=sent.attempted, succeeded=sent.succeeded, failed=sent.failed,
            failures=sent.failures, checked=len(pending), triggered=len(fired),
        )
        logger.info("Checked %d alerts over %d symbols, triggered %d",
                    summary.checked, len(groups), summary.triggered)
        return summary
