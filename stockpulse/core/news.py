# stockpulse/core/news.py
# Purpose: Finnhub news access (company news per symbol + general feed) with a
# short TTL cache and per-item decoding. Malformed items are dropped here.

from __future__ import annotations

import logging
import threading
import time
from datetime import date, timedelta
from typing import Any, Dict, List

from pydantic import ValidationError

from stockpulse.core.base import NewsSource
from stockpulse.core.config import settings
from stockpulse.core.errors import UpstreamFetchError
from stockpulse.core.finnhub import FinnhubClient
from stockpulse.models.schema import RawArticle

logger = logging.getLogger(__name__)


# --- TTL cache simple ---
class _TTLCache:
    def __init__(self, ttl_s: int = 300, maxsize: int = 512):
        self.ttl = ttl_s
        self.maxsize = maxsize
        self._data: Dict[str, tuple[Any, float]] = {}
        self._lock = threading.RLock()
    def get(self, k: str):
        with self._lock:
            v = self._data.get(k)
            if not v: return None
            val, ts = v
            if time.time() - ts > self.ttl:
                self._data.pop(k, None); return None
            return val
    def set(self, k: str, val: Any):
        with self._lock:
            if len(self._data) >= self.maxsize: self._data.clear()
            self._data[k] = (val, time.time())


def decode_articles(payload: Any, context: str = "") -> List[RawArticle]:
    """Decode a JSON list into RawArticle items, skipping entries that fail validation."""
    if not isinstance(payload, list):
        raise UpstreamFetchError(f"unexpected news payload for {context or 'feed'}", source="finnhub", symbol=context)
    out: List[RawArticle] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        try:
            out.append(RawArticle.model_validate(item))
        except ValidationError as e:
            logger.debug("Dropping malformed article (%s): %s", context, e.errors()[:1])
    return out


def date_range(days: int, today: date | None = None) -> tuple[date, date]:
    """(from, to) window covering the last ``days`` days, inclusive of today."""
    to_d = today or date.today()
    return to_d - timedelta(days=days), to_d


class FinnhubNewsSource(NewsSource):
    def __init__(self, client: FinnhubClient, ttl_s: int | None = None):
        self.client = client
        self._cache = _TTLCache(ttl_s=settings.NEWS_CACHE_TTL_S if ttl_s is None else ttl_s)

    def ensure_configured(self) -> None:
        self.client.ensure_configured()

    async def get_company_news(self, symbol: str, from_date: date, to_date: date) -> List[RawArticle]:
        symbol = (symbol or "").strip().upper()
        key = f"company:{symbol}:{from_date.isoformat()}:{to_date.isoformat()}"
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)
        data = await self.client.get_json(
            "company-news",
            {"symbol": symbol, "from": from_date.isoformat(), "to": to_date.isoformat()},
            symbol=symbol,
        )
        items = decode_articles(data, symbol)
        self._cache.set(key, items)
        return list(items)

    async def get_general_news(self) -> List[RawArticle]:
        cached = self._cache.get("general")
        if cached is not None:
            return list(cached)
        data = await self.client.get_json("news", {"category": "general"})
        items = decode_articles(data)
        self._cache.set("general", items)
        return list(items)
