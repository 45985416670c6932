"""Tests for the HTTP-backed sources, driven through httpx.MockTransport."""
from __future__ import annotations

import json
from datetime import date

import httpx
import pytest

from conftest import run
from stockpulse.core.errors import ConfigurationError, UpstreamFetchError
from stockpulse.core.finnhub import FinnhubClient
from stockpulse.core.llm import ChatReasoningService
from stockpulse.core.market import FinnhubQuoteSource
from stockpulse.core.news import FinnhubNewsSource, date_range, decode_articles


def _client(handler, api_key="k"):
    return FinnhubClient(api_key=api_key, base_url="https://finnhub.test/api/v1",
                         timeout=5, transport=httpx.MockTransport(handler))


class TestFinnhubQuotes:
    def test_decodes_short_field_names(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"c": 151.2, "h": 152, "l": 149.5, "o": 150, "pc": 148.9})

        quote = run(FinnhubQuoteSource(_client(handler)).get_quote("aapl"))

        assert (quote.symbol, quote.current, quote.previous_close) == ("AAPL", 151.2, 148.9)
        assert quote.has_data
        assert seen[0].url.path == "/api/v1/quote"
        assert seen[0].url.params["symbol"] == "AAPL"
        assert seen[0].url.params["token"] == "k"

    def test_zero_price_means_no_data(self):
        quote = run(FinnhubQuoteSource(_client(lambda r: httpx.Response(200, json={"c": 0, "pc": None}))).get_quote("ZZZZ"))
        assert not quote.has_data

    def test_http_error_raises_upstream_error(self):
        source = FinnhubQuoteSource(_client(lambda r: httpx.Response(500, text="oops")))
        with pytest.raises(UpstreamFetchError) as exc:
            run(source.get_quote("AAPL"))
        assert exc.value.symbol == "AAPL"

    def test_non_object_payload_raises(self):
        source = FinnhubQuoteSource(_client(lambda r: httpx.Response(200, json=[1, 2])))
        with pytest.raises(UpstreamFetchError):
            run(source.get_quote("AAPL"))

    def test_missing_key_is_configuration_error(self):
        source = FinnhubQuoteSource(_client(lambda r: httpx.Response(200, json={}), api_key=""))
        with pytest.raises(ConfigurationError):
            source.ensure_configured()
        with pytest.raises(ConfigurationError):
            run(source.get_quote("AAPL"))


class TestFinnhubNews:
    def test_company_news_drops_malformed_items_and_caches(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.params["symbol"])
            return httpx.Response(200, json=[
                {"id": 1, "headline": "ok", "summary": "s", "url": "https://x/1", "source": "R", "datetime": 100},
                {"id": "not-a-number", "headline": "bad"},
                "junk",
            ])

        source = FinnhubNewsSource(_client(handler), ttl_s=300)
        frm, to = date_range(5, today=date(2026, 10, 19))
        first = run(source.get_company_news("msft", frm, to))
        second = run(source.get_company_news("MSFT", frm, to))

        assert [a.id for a in first] == [1]
        assert first[0].published_at == 100
        assert second == first
        assert calls == ["MSFT"]

    def test_general_news_request(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        assert run(FinnhubNewsSource(_client(handler)).get_general_news()) == []
        assert seen[0].url.path.endswith("/news")
        assert seen[0].url.params["category"] == "general"

    def test_decode_rejects_non_list(self):
        with pytest.raises(UpstreamFetchError):
            decode_articles({"error": "limit"}, "AAPL")

    def test_date_range(self):
        assert date_range(5, today=date(2026, 10, 19)) == (date(2026, 10, 14), date(2026, 10, 19))


class TestChatReasoning:
    def test_returns_first_choice_content(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"choices": [{"message": {"content": "  {\"a\": 1}  "}}]})

        svc = ChatReasoningService(api_url="https://llm.test/v1/chat/completions", api_key="secret",
                                   model="m", transport=httpx.MockTransport(handler))
        assert run(svc.complete("hello")) == '{"a": 1}'

        assert seen[0].headers["Authorization"] == "Bearer secret"
        body = json.loads(seen[0].content)
        assert body["model"] == "m"
        assert body["messages"][-1] == {"role": "user", "content": "hello"}

    def test_no_choices_gives_empty_text(self):
        svc = ChatReasoningService(api_url="https://llm.test/v1", api_key="secret",
                                   transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
        assert run(svc.complete("hello")) == ""

    def test_rate_limit_raises_upstream_error(self):
        svc = ChatReasoningService(api_url="https://llm.test/v1", api_key="secret",
                                   transport=httpx.MockTransport(lambda r: httpx.Response(429)))
        with pytest.raises(UpstreamFetchError):
            run(svc.complete("hello"))

    def test_missing_key(self):
        svc = ChatReasoningService(api_url="https://llm.test/v1", api_key="")
        with pytest.raises(ConfigurationError):
            svc.ensure_configured()
