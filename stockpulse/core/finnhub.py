# stockpulse/core/finnhub.py
# Thin async client for the Finnhub REST API (quote, company-news, news).

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from stockpulse.core.config import settings
from stockpulse.core.errors import ConfigurationError, UpstreamFetchError

logger = logging.getLogger(__name__)


class FinnhubClient:
    """
    One instance per process. A fresh AsyncClient is opened per request so the
    instance can be shared between the API event loop and scheduler threads.
    """

    def __init__(self, api_key: str | None = None, base_url: str | None = None,
                 timeout: float | None = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.FINNHUB_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.FINNHUB_BASE_URL).rstrip("/")
        self.timeout = settings.HTTP_TIMEOUT_S if timeout is None else timeout
        self._transport = transport

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationError("FINNHUB API key is not configured", setting="FINNHUB_API_KEY")

    async def get_json(self, path: str, params: dict[str, Any], symbol: str = "") -> Any:
        self.ensure_configured()
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.get(url, params={**params, "token": self.api_key})
                r.raise_for_status()
                return r.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamFetchError(
                f"Fetch failed {e.response.status_code}: {e.response.text[:200]}",
                source="finnhub", symbol=symbol,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            # ValueError covers an undecodable body
            raise UpstreamFetchError(f"{path}: {e!r}", source="finnhub", symbol=symbol) from e
