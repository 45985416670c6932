# stockpulse/core/market.py
# Quote sources: Finnhub (needs an API key) and yfinance (keyless).
# Quotes are never cached; every evaluation cycle sees a fresh snapshot.

from __future__ import annotations

import asyncio
import logging

import yfinance as yf
from pydantic import ValidationError

from stockpulse.core.base import QuoteSource
from stockpulse.core.config import settings
from stockpulse.core.errors import UpstreamFetchError
from stockpulse.core.finnhub import FinnhubClient
from stockpulse.models.schema import Quote

logger = logging.getLogger(__name__)


def _norm(sym: str) -> str:
    return (sym or "").upper().strip()


class FinnhubQuoteSource(QuoteSource):
    def __init__(self, client: FinnhubClient):
        self.client = client

    def ensure_configured(self) -> None:
        self.client.ensure_configured()

    async def get_quote(self, symbol: str) -> Quote:
        symbol = _norm(symbol)
        data = await self.client.get_json("quote", {"symbol": symbol}, symbol=symbol)
        if not isinstance(data, dict):
            raise UpstreamFetchError(f"unexpected quote payload for {symbol}", source="finnhub", symbol=symbol)
        # c = current, h = high, l = low, o = open, pc = previous close
        try:
            return Quote.model_validate({**data, "symbol": symbol})
        except ValidationError as e:
            raise UpstreamFetchError(f"malformed quote for {symbol}: {e}", source="finnhub", symbol=symbol) from e


class YFinanceQuoteSource(QuoteSource):
    """Uses fast_info when possible; falls back to the last 1m close."""

    def __init__(self, timeout: float | None = None):
        self.timeout = settings.HTTP_TIMEOUT_S if timeout is None else timeout

    def _snapshot(self, symbol: str) -> Quote:
        t = yf.Ticker(symbol)
        fi = t.fast_info
        price = fi.get("lastPrice")
        if price is None:
            h = t.history(period="1d", interval="1m")
            if not h.empty:
                price = float(h["Close"].iloc[-1])
        return Quote(
            symbol=symbol,
            current=float(price) if price is not None else 0.0,
            high=fi.get("dayHigh"),
            low=fi.get("dayLow"),
            open=fi.get("open"),
            previous_close=fi.get("previousClose"),
        )

    async def get_quote(self, symbol: str) -> Quote:
        symbol = _norm(symbol)
        try:
            return await asyncio.wait_for(asyncio.to_thread(self._snapshot, symbol), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamFetchError(f"yfinance timed out for {symbol}", source="yfinance", symbol=symbol) from e
        except Exception as e:
            raise UpstreamFetchError(f"yfinance failed for {symbol}: {e}", source="yfinance", symbol=symbol) from e


def build_quote_source(client: FinnhubClient) -> QuoteSource:
    provider = settings.QUOTE_PROVIDER.strip().lower()
    if provider == "yfinance":
        return YFinanceQuoteSource()
    if provider != "finnhub":
        logger.warning("Unknown QUOTE_PROVIDER %r, using finnhub", settings.QUOTE_PROVIDER)
    return FinnhubQuoteSource(client)
