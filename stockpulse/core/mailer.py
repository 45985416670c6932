# stockpulse/core/mailer.py
# SMTP mail transport. Built once per process; each send opens its own
# connection inside a worker thread so callers stay async.

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

from stockpulse.core.base import MailTransport
from stockpulse.core.config import settings
from stockpulse.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SmtpMailTransport(MailTransport):
    def __init__(self, host: str | None = None, port: int | None = None,
                 user: str | None = None, password: str | None = None,
                 timeout: float | None = None):
        self.host = host or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.user = settings.SMTP_USER if user is None else user
        self.password = settings.SMTP_PASSWORD if password is None else password
        self.timeout = settings.SMTP_TIMEOUT_S if timeout is None else timeout

    def ensure_configured(self) -> None:
        if not self.user or not self.password:
            raise ConfigurationError("SMTP_USER/SMTP_PASSWORD are not configured", setting="SMTP_USER")

    def _message(self, recipient: str, subject: str, html_body: str, text_body: str,
                 sender_name: Optional[str]) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((sender_name or settings.APP_NAME, self.user))
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.set_content(text_body)
        msg.add_alternative(html_body, subtype="html")
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            smtp.login(self.user, self.password)
            smtp.send_message(msg)

    async def send(self, recipient: str, subject: str, html_body: str, text_body: str,
                   sender_name: Optional[str] = None) -> None:
        self.ensure_configured()
        msg = self._message(recipient, subject, html_body, text_body, sender_name)
        await asyncio.to_thread(self._deliver, msg)
        logger.info("Mail sent to %s: %s", recipient, subject)
