# stockpulse/core/templates.py
# Mail templates as data: an enumerated registry resolved by key at send time.
# Rendering is plain {{placeholder}} substitution, nothing conditional.

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Tuple

from stockpulse.core.config import settings
from stockpulse.core.errors import TemplateRenderError

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


class TemplateKind(str, Enum):
    WELCOME = "welcome"
    DIGEST = "digest"
    ALERT_ABOVE = "alert-above"
    ALERT_BELOW = "alert-below"


@dataclass(frozen=True)
class MailTemplate:
    sender_name: str
    subject: str
    text: str
    html: str


_LAYOUT = """<!DOCTYPE html>
<html><body style="margin:0;padding:0;background:#050505;font-family:Arial,Helvetica,sans-serif;color:#CCDADC;">
<table role="presentation" width="100%" cellspacing="0" cellpadding="0"><tr><td align="center" style="padding:32px 16px;">
<table role="presentation" width="600" cellspacing="0" cellpadding="0" style="background:#141414;border-radius:8px;">
<tr><td style="padding:32px;">{body}</td></tr>
<tr><td style="padding:16px 32px;font-size:12px;color:#9CA3AF;">You are receiving this because you have an account with {app}.</td></tr>
</table></td></tr></table>
</body></html>"""


def _page(body: str) -> str:
    return _LAYOUT.format(body=body, app=settings.APP_NAME)


_WELCOME_HTML = _page(
    '<h1 style="color:#FDD458;">Welcome aboard, {{name}}</h1>'
    '<p style="font-size:16px;line-height:1.6;">{{intro}}</p>'
)

_DIGEST_HTML = _page(
    '<h1 style="color:#FDD458;">Market News Summary</h1>'
    '<p style="font-size:14px;color:#9CA3AF;">{{date}}</p>'
    '<p style="font-size:16px;">Hi {{name}}, here is what moved around your watchlist.</p>'
    '{{newsContent}}'
    '{{sentimentContent}}'
)

_ALERT_ABOVE_HTML = _page(
    '<h1 style="color:#0FEDBE;">Price Above Target</h1>'
    '<p style="font-size:16px;"><strong>{{symbol}}</strong> ({{company}}) is trading at '
    '<strong>{{currentPrice}}</strong>, at or above your target of {{targetPrice}}.</p>'
    '<p style="font-size:12px;color:#9CA3AF;">Triggered {{timestamp}}</p>'
)

_ALERT_BELOW_HTML = _page(
    '<h1 style="color:#FF495B;">Price Below Target</h1>'
    '<p style="font-size:16px;"><strong>{{symbol}}</strong> ({{company}}) is trading at '
    '<strong>{{currentPrice}}</strong>, at or below your target of {{targetPrice}}.</p>'
    '<p style="font-size:12px;color:#9CA3AF;">Triggered {{timestamp}}</p>'
)

TEMPLATES: Dict[TemplateKind, MailTemplate] = {
    TemplateKind.WELCOME: MailTemplate(
        sender_name=settings.APP_NAME,
        subject=f"Welcome to {settings.APP_NAME} - your stock market toolkit is ready!",
        text=f"Thanks for joining {settings.APP_NAME}",
        html=_WELCOME_HTML,
    ),
    TemplateKind.DIGEST: MailTemplate(
        sender_name=f"{settings.APP_NAME} News",
        subject="📈 Market News Summary Today - {{date}}",
        text="Today's market news summary\n\n{{newsText}}",
        html=_DIGEST_HTML,
    ),
    TemplateKind.ALERT_ABOVE: MailTemplate(
        sender_name=f"{settings.APP_NAME} Alerts",
        subject="📈 {{symbol}} hit your upper target of {{targetPrice}}!",
        text="{{symbol}} price alert triggered. Current price: {{currentPrice}}",
        html=_ALERT_ABOVE_HTML,
    ),
    TemplateKind.ALERT_BELOW: MailTemplate(
        sender_name=f"{settings.APP_NAME} Alerts",
        subject="📉 {{symbol}} dropped below {{targetPrice}}",
        text="{{symbol}} price alert triggered. Current price: {{currentPrice}}",
        html=_ALERT_BELOW_HTML,
    ),
}


def substitute(template: str, values: Mapping[str, str]) -> str:
    def repl(m: re.Match) -> str:
        key = m.group(1)
        if key not in values:
            raise TemplateRenderError(f"missing value for {{{{{key}}}}}")
        return str(values[key])
    return _PLACEHOLDER.sub(repl, template)


def render(kind: TemplateKind | str, values: Mapping[str, str]) -> Tuple[MailTemplate, str, str, str]:
    """Return (template, subject, html, text) for ``kind`` filled with ``values``."""
    try:
        tpl = TEMPLATES[TemplateKind(kind)]
    except (ValueError, KeyError) as e:
        raise TemplateRenderError(f"unknown template {kind!r}") from e
    return tpl, substitute(tpl.subject, values), substitute(tpl.html, values), substitute(tpl.text, values)
