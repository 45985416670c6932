# stockpulse/core/news_rank.py
# Purpose: pick a bounded, fair set of articles across a user's symbols.
#
# Per-symbol lists are fetched concurrently, filtered to valid articles and
# consumed round-robin in the caller's symbol order (the first symbol is always
# tried first in each round). When nothing comes back for the symbols, the
# general market feed is used instead.

from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import date
from typing import Deque, Dict, Iterable, List, Optional

from stockpulse.core.base import NewsSource
from stockpulse.core.config import settings
from stockpulse.core.news import date_range
from stockpulse.models.schema import RawArticle, SelectedArticle

logger = logging.getLogger(__name__)


def clean_symbols(symbols: Iterable[str] | None) -> List[str]:
    """Upper-case, drop blanks and repeats; first occurrence keeps its position."""
    out: List[str] = []
    for s in symbols or []:
        sym = (s or "").strip().upper()
        if sym and sym not in out:
            out.append(sym)
    return out


def round_robin(per_symbol: Dict[str, List[RawArticle]], order: List[str], limit: int) -> List[SelectedArticle]:
    """
    Take one article per symbol per round until ``limit`` picks are made or
    every list is exhausted. Lists are consumed front to back (newest first).
    """
    queues: Dict[str, Deque[RawArticle]] = {s: deque(per_symbol.get(s) or []) for s in order}
    picked: List[SelectedArticle] = []
    rnd = 0
    while len(picked) < limit and any(queues.values()):
        for sym in order:
            q = queues[sym]
            if not q:
                continue
            art = q.popleft()
            picked.append(SelectedArticle(**art.model_dump(), selection_round=rnd, symbol=sym))
            if len(picked) >= limit:
                break
        rnd += 1
    return picked


def dedupe_general(items: Iterable[RawArticle], cap: int) -> List[RawArticle]:
    """Valid, unique on (id, url, headline), first occurrence kept, at most ``cap``."""
    seen = set(); out: List[RawArticle] = []
    for it in items:
        if not it.is_valid():
            continue
        key = (it.id, it.url, it.headline)
        if key in seen:
            continue
        seen.add(key); out.append(it)
        if len(out) >= cap: break
    return out


class NewsAggregationEngine:
    def __init__(self, source: NewsSource, lookback_days: int | None = None,
                 general_cap: int | None = None):
        self.source = source
        self.lookback_days = settings.NEWS_LOOKBACK_DAYS if lookback_days is None else lookback_days
        self.general_cap = settings.GENERAL_NEWS_CAP if general_cap is None else general_cap

    async def _company_news(self, symbol: str, from_d: date, to_d: date) -> List[RawArticle]:
        try:
            items = await self.source.get_company_news(symbol, from_d, to_d)
        except Exception as e:
            # one symbol failing never costs the others their articles
            logger.warning("Company news failed for %s: %s", symbol, e)
            return []
        return [a for a in items if a.is_valid()]

    async def _by_symbol(self, symbols: List[str], limit: int) -> List[SelectedArticle]:
        from_d, to_d = date_range(self.lookback_days)
        lists = await asyncio.gather(*(self._company_news(s, from_d, to_d) for s in symbols))
        per_symbol = dict(zip(symbols, lists))
        picked = round_robin(per_symbol, symbols, limit)
        picked.sort(key=lambda a: a.published_at, reverse=True)
        # the round only breaks ties during selection
        return [a.model_copy(update={"selection_round": None}) for a in picked]

    async def _general(self, limit: int) -> List[SelectedArticle]:
        unique = dedupe_general(await self.source.get_general_news(), self.general_cap)
        return [SelectedArticle(**a.model_dump(), selection_round=i) for i, a in enumerate(unique[:limit])]

    async def select_articles(self, symbols: Iterable[str] | None, limit: int,
                              fallback: bool = True) -> List[SelectedArticle]:
        """
        Up to ``limit`` articles for ``symbols``, newest first.

        With ``fallback`` the general feed is used when the symbols yield
        nothing (or none were given); a failing general feed raises
        UpstreamFetchError. Without it the result may be empty.
        """
        if limit <= 0:
            return []
        syms = clean_symbols(symbols)
        if syms:
            picked = await self._by_symbol(syms, limit)
            if picked:
                return picked
            logger.info("No company news for %s", ",".join(syms))
        if not fallback:
            return []
        return await self._general(limit)


def headlines(articles: Iterable[SelectedArticle], limit: Optional[int] = None) -> List[str]:
    out = [a.headline.strip() for a in articles if a.headline.strip()]
    return out if limit is None else out[:limit]
