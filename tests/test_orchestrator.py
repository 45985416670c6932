"""Tests for the orchestrator entry points: run leases, welcome mail, never-raise."""
from __future__ import annotations

from unittest.mock import patch

import pytest

from conftest import FakeMail, FakeNews, FakeQuotes, FakeReasoning, MemoryAlertStore, MemoryUsers, make_alert, run
from stockpulse.core.orchestrator import DAILY_DIGEST, PRICE_ALERTS, PipelineOrchestrator


@pytest.fixture
def orch_parts(alice):
    store = MemoryAlertStore([make_alert(1, target=150.0)])
    quotes = FakeQuotes({"AAPL": 151.20})
    mail = FakeMail()
    orch = PipelineOrchestrator(store, MemoryUsers([alice], {"u1": []}), quotes, FakeNews(),
                                FakeReasoning(), mail, digest_sentiment=False)
    return orch, store, mail


def test_price_alert_run(orch_parts):
    orch, store, mail = orch_parts
    summary = run(orch.run_price_alerts())

    assert (summary.checked, summary.triggered, summary.succeeded) == (1, 1, 1)
    assert summary.skipped is False
    assert store.commits == [1]
    assert mail.sent[0]["subject"] == "📈 AAPL hit your upper target of $150.00!"


def test_overlapping_run_is_skipped(orch_parts):
    orch, store, mail = orch_parts
    lease = orch._leases[PRICE_ALERTS]
    lease.acquire()
    try:
        summary = run(orch.run_price_alerts())
    finally:
        lease.release()

    assert summary.skipped is True
    assert summary.attempted == 0
    assert store.commits == []
    assert mail.sent == []


def test_leases_are_per_pipeline(orch_parts):
    orch, _, _ = orch_parts
    with orch._leases[DAILY_DIGEST]:
        summary = run(orch.run_price_alerts())
    assert summary.skipped is False
    assert summary.triggered == 1


def test_lease_released_after_run(orch_parts):
    orch, _, _ = orch_parts
    run(orch.run_daily_digest())
    assert orch._leases[DAILY_DIGEST].acquire(blocking=False)
    orch._leases[DAILY_DIGEST].release()


def test_unexpected_failure_returns_empty_summary(orch_parts):
    orch, _, _ = orch_parts

    async def boom():
        raise RuntimeError("unexpected")

    with patch.object(orch.digest, "run", boom):
        summary = run(orch.run_daily_digest())
    assert summary.attempted == 0
    assert summary.skipped is False
    assert not orch._leases[DAILY_DIGEST].locked()


def test_welcome_mail(orch_parts):
    orch, _, mail = orch_parts
    summary = run(orch.send_welcome("new@example.com", "<Eve>"))

    assert summary.succeeded == 1
    msg = mail.sent[0]
    assert msg["to"] == "new@example.com"
    assert msg["subject"].startswith("Welcome to")
    assert "&lt;Eve&gt;" in msg["html"]


def test_welcome_mail_without_credentials(alice):
    mail = FakeMail(configured=False)
    orch = PipelineOrchestrator(MemoryAlertStore([]), MemoryUsers([alice]), FakeQuotes({}), FakeNews(),
                                FakeReasoning(), mail)
    summary = run(orch.send_welcome("new@example.com", "Eve"))
    assert summary.attempted == 0
    assert mail.sent == []


def test_blocking_entry_points(orch_parts):
    orch, _, _ = orch_parts
    assert orch.run_price_alerts_blocking().triggered == 1
    assert orch.run_daily_digest_blocking().attempted == 1
