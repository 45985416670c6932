# stockpulse/core/sentiment.py
# Purpose: headline sentiment for one symbol via the reasoning service, with a
# defensive parse of the free-form reply into a validated SentimentResult.

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, List, Optional

from stockpulse.core.base import ReasoningService
from stockpulse.core.errors import ConfigurationError, ParseError, UpstreamFetchError
from stockpulse.core.news_rank import NewsAggregationEngine, headlines
from stockpulse.models.schema import SentimentResult

logger = logging.getLogger(__name__)

MAX_HEADLINES = 5
SENTIMENTS = ("bullish", "bearish", "neutral")
NO_NEWS_SUMMARY = "No recent news available for analysis."
DEFAULT_SUMMARY = "Sentiment analysis completed."
FIELDS = ("sentiment", "score", "summary")

_PROMPT = """Analyze the sentiment of these news headlines for {symbol} stock. Return ONLY a JSON object with these exact fields:
- sentiment: "bullish", "bearish", or "neutral"
- score: a number from 0 to 100 (0 = extremely bearish, 50 = neutral, 100 = extremely bullish)
- summary: a brief 1-sentence summary of the overall sentiment

Headlines:
{headlines}

Return ONLY valid JSON, no markdown, no explanation."""

_FENCE_OPEN = re.compile(r"```(?:json)?\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```\n?")
_FLAT_GROUP = re.compile(r"\{[^{}]*\}")


def build_prompt(symbol: str, lines: List[str]) -> str:
    numbered = "\n".join(f"{i}. {h}" for i, h in enumerate(lines, start=1))
    return _PROMPT.format(symbol=symbol, headlines=numbered)


def strip_fences(text: str) -> str:
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text or "")).strip()


def _first_flat_group_with_fields(text: str) -> Optional[str]:
    for m in _FLAT_GROUP.finditer(text):
        group = m.group(0)
        if all(f'"{f}"' in group for f in FIELDS):
            return group
    return None


def _first_balanced_group(text: str) -> Optional[str]:
    """First ``{...}`` substring whose braces balance, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0; in_str = False; escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_str:
                if escaped: escaped = False
                elif ch == "\\": escaped = True
                elif ch == '"': in_str = False
                continue
            if ch == '"':
                in_str = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("{", start + 1)
    return None


def parse_payload(text: str) -> dict:
    """Locate and decode the JSON object in a model reply; raise ParseError otherwise."""
    clean = strip_fences(text)
    candidate = _first_flat_group_with_fields(clean) or _first_balanced_group(clean)
    if candidate is None:
        raise ParseError("no JSON object in response")
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError("decoded value is not an object")
    return data


def coerce_result(data: dict) -> SentimentResult:
    """Repair out-of-range fields instead of rejecting the answer."""
    raw_sent: Any = data.get("sentiment")
    sentiment = raw_sent.strip().lower() if isinstance(raw_sent, str) else ""
    if sentiment not in SENTIMENTS:
        sentiment = "neutral"

    raw_score: Any = data.get("score")
    if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float)) or not math.isfinite(raw_score):
        score = 50
    else:
        score = int(round(min(100.0, max(0.0, float(raw_score)))))

    raw_summary: Any = data.get("summary")
    summary = raw_summary.strip() if isinstance(raw_summary, str) else ""
    return SentimentResult(sentiment=sentiment, score=score, summary=summary or DEFAULT_SUMMARY)


class SentimentExtractionEngine:
    def __init__(self, news: NewsAggregationEngine, reasoning: ReasoningService):
        self.news = news
        self.reasoning = reasoning

    async def extract(self, symbol: str) -> Optional[SentimentResult]:
        """
        Sentiment verdict for ``symbol``'s recent headlines.

        Returns the neutral default when there is no news (the reasoning service
        is not called) and ``None`` when the service is unconfigured, fails, or
        answers with something that cannot be parsed.
        """
        symbol = (symbol or "").strip().upper()
        try:
            self.news.source.ensure_configured()
            self.reasoning.ensure_configured()
        except ConfigurationError as e:
            logger.error("Sentiment unavailable: %s", e)
            return None

        articles = await self.news.select_articles([symbol], MAX_HEADLINES, fallback=False)
        lines = headlines(articles, MAX_HEADLINES)
        if not lines:
            return SentimentResult(sentiment="neutral", score=50, summary=NO_NEWS_SUMMARY)

        try:
            text = await self.reasoning.complete(build_prompt(symbol, lines))
        except UpstreamFetchError as e:
            logger.warning("Reasoning call failed for %s: %s", symbol, e)
            return None
        if not text:
            return None

        try:
            result = coerce_result(parse_payload(text))
        except ParseError as e:
            logger.warning("Unparseable sentiment for %s: %s | %r", symbol, e, text[:200])
            return None
        logger.info("Sentiment %s: %s/%d", symbol, result.sentiment, result.score)
        return result
