# stockpulse/core/errors.py
"""
Failure taxonomy for the notification pipelines.

- ConfigurationError: a required credential is missing; the pipeline aborts at entry.
- UpstreamFetchError: timeout or non-success from an external source; isolated to one unit.
- ParseError: reasoning output could not be turned into a structured value.

Malformed external records fail pydantic validation and are dropped where they
are decoded. A lost compare-and-set on an alert is not an error: the alert was
already handled by another run.
"""

from __future__ import annotations


class StockPulseError(Exception):
    """Base error for all pipeline subsystems."""


class ConfigurationError(StockPulseError):
    """Missing external credential or unusable setting."""

    def __init__(self, message: str, *, setting: str = ""):
        self.setting = setting
        super().__init__(message)


class UpstreamFetchError(StockPulseError):
    """An external source timed out or answered with a non-success status."""

    def __init__(self, message: str, *, source: str = "", symbol: str = ""):
        self.source = source
        self.symbol = symbol
        super().__init__(message)


class ParseError(StockPulseError):
    pass


class DuplicateAlertError(StockPulseError):
    """The user already has a pending alert for this symbol."""

    def __init__(self, user_id: str, symbol: str):
        self.user_id = user_id
        self.symbol = symbol
        super().__init__(f"user {user_id} already has an active alert for {symbol}")


class RecipientNotFound(StockPulseError):
    pass


class TemplateRenderError(StockPulseError):
    pass
