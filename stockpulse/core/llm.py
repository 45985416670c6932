# stockpulse/core/llm.py
# Thin async client for an OpenAI-compatible chat completions endpoint (Groq by default).

from __future__ import annotations

import logging
from typing import Optional

import httpx

from stockpulse.core.base import ReasoningService
from stockpulse.core.config import settings
from stockpulse.core.errors import ConfigurationError, UpstreamFetchError

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = "You are a financial analyst. Return only valid JSON."


class ChatReasoningService(ReasoningService):
    def __init__(self, api_url: str | None = None, api_key: str | None = None,
                 model: str | None = None, timeout: float | None = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url or settings.REASONING_API_URL
        self.api_key = settings.REASONING_API_KEY if api_key is None else api_key
        self.model = model or settings.REASONING_MODEL
        self.timeout = settings.REASONING_TIMEOUT_S if timeout is None else timeout
        self._transport = transport

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationError("REASONING_API_KEY is not configured", setting="REASONING_API_KEY")

    async def complete(self, prompt: str) -> str:
        """Send one prompt and return the first choice's text ("" if absent)."""
        self.ensure_configured()
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.3,
            "max_tokens": 200,
        }
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(self.api_url, json=payload, headers=headers)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamFetchError(f"reasoning API error {e.response.status_code}", source="reasoning") from e
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamFetchError(f"reasoning API unreachable: {e!r}", source="reasoning") from e

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        out = (message.get("content") or "").strip()
        logger.debug("LLM prompt:\n%s\nresponse:\n%s", prompt, out)
        return out
