# stockpulse/core/notifications.py
# Per-recipient fan-out: every job is built, rendered and sent inside its own
# failure boundary, so one bad recipient only costs its own outcome.

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

from stockpulse.core.base import MailTransport
from stockpulse.core.config import settings
from stockpulse.core.templates import TemplateKind, render

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class NotificationJob:
    recipient_key: str
    recipient: str
    template_kind: TemplateKind
    substitutions: Dict[str, str] = field(default_factory=dict)


@dataclass
class DispatchOutcome:
    recipient_key: str
    succeeded: bool
    failure_reason: Optional[str] = None


@dataclass
class RunSummary:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: List[DispatchOutcome] = field(default_factory=list)
    skipped: bool = False

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[DispatchOutcome], **extra: Any):
        outcomes = list(outcomes)
        failures = [o for o in outcomes if not o.succeeded]
        return cls(
            attempted=len(outcomes),
            succeeded=len(outcomes) - len(failures),
            failed=len(failures),
            failures=failures,
            **extra,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AlertRunSummary(RunSummary):
    checked: int = 0
    triggered: int = 0


class NotificationDispatchPipeline:
    def __init__(self, transport: MailTransport, concurrency: int | None = None,
                 timeout: float | None = None):
        self.transport = transport
        self.concurrency = max(1, concurrency or settings.DISPATCH_CONCURRENCY)
        self.timeout = settings.DISPATCH_TIMEOUT_S if timeout is None else timeout

    def ensure_configured(self) -> None:
        self.transport.ensure_configured()

    async def send(self, job: NotificationJob) -> None:
        tpl, subject, html, text = render(job.template_kind, job.substitutions)
        await self.transport.send(job.recipient, subject, html, text, sender_name=tpl.sender_name)

    async def _one(self, item: T, build: Optional[Callable[[T], Awaitable[NotificationJob]]],
                   key: str, sem: asyncio.Semaphore) -> DispatchOutcome:
        async def unit() -> None:
            job = await build(item) if build is not None else item
            await self.send(job)

        async with sem:
            try:
                await asyncio.wait_for(unit(), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning("Notification for %s timed out after %.0fs", key, self.timeout)
                return DispatchOutcome(key, False, f"timed out after {self.timeout:.0f}s")
            except Exception as e:
                logger.warning("Notification for %s failed: %s", key, e)
                return DispatchOutcome(key, False, f"{type(e).__name__}: {e}")
        return DispatchOutcome(key, True)

    async def run(self, items: Iterable[T],
                  build: Optional[Callable[[T], Awaitable[NotificationJob]]] = None,
                  key: Callable[[T], str] = str) -> RunSummary:
        """
        Fan out one unit per item. ``build`` gathers data and returns the job to
        send; its failures are recorded for that item like a send failure.
        """
        items = list(items)
        sem = asyncio.Semaphore(self.concurrency)
        outcomes = await asyncio.gather(*(self._one(it, build, key(it), sem) for it in items))
        summary = RunSummary.from_outcomes(outcomes)
        logger.info("Dispatch: attempted=%d succeeded=%d failed=%d",
                    summary.attempted, summary.succeeded, summary.failed)
        return summary

    async def dispatch(self, jobs: Iterable[NotificationJob]) -> RunSummary:
        return await self.run(jobs, key=lambda j: j.recipient_key)
