# stockpulse/core/scheduler.py
# Periodic triggers: price alerts on a short interval, the news digest by crontab.

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from stockpulse.core.config import settings
from stockpulse.core.orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)


def check_price_alerts(orchestrator: PipelineOrchestrator) -> None:
    summary = orchestrator.run_price_alerts_blocking()
    logger.info("Price alerts: checked=%d triggered=%d sent=%d/%d%s",
                summary.checked, summary.triggered, summary.succeeded, summary.attempted,
                " (skipped)" if summary.skipped else "")


def send_daily_digest(orchestrator: PipelineOrchestrator) -> None:
    summary = orchestrator.run_daily_digest_blocking()
    logger.info("Daily digest: sent=%d/%d failed=%d%s",
                summary.succeeded, summary.attempted, summary.failed,
                " (skipped)" if summary.skipped else "")


def start_scheduler(orchestrator: PipelineOrchestrator) -> BackgroundScheduler:
    s = BackgroundScheduler()
    s.add_job(check_price_alerts, "interval", seconds=settings.ALERT_INTERVAL_S,
              args=[orchestrator], id="price-alerts", max_instances=1, coalesce=True)
    s.add_job(send_daily_digest, CronTrigger.from_crontab(settings.DIGEST_CRON),
              args=[orchestrator], id="daily-digest", max_instances=1, coalesce=True)
    s.start()
    logger.info("Scheduler started: alerts every %ds, digest at '%s'",
                settings.ALERT_INTERVAL_S, settings.DIGEST_CRON)
    return s
