"""
Outbound mail over SMTP.

``SmtpMailGateway.send`` is the only primitive the rest of the system uses.
Any transport failure is re-raised as ``TransportError`` so callers can
log it without caring about ``aiosmtplib`` internals.
"""

from __future__ import annotations

import logging
from email.message import EmailMessage
from typing import Iterable

import aiosmtplib

from src.config import Settings
from src.domain.exceptions import TransportError

logger = logging.getLogger(__name__)


class SmtpMailGateway:
    def __init__(self, settings: Settings):
        self.settings = settings

    def build_message(self, to: Iterable[str], subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.mail_from
        message["To"] = ", ".join(to)
        message["Subject"] = subject
        message.set_content(html, subtype="html")
        return message

    async def send(self, to: Iterable[str], subject: str, html: str) -> None:
        recipients = [addr for addr in to if addr]
        if not recipients:
            return
        message = self.build_message(recipients, subject, html)
        s = self.settings
        try:
            await aiosmtplib.send(
                message,
                hostname=s.smtp_host,
                port=s.smtp_port,
                username=s.smtp_username or None,
                password=s.smtp_password or None,
                use_tls=s.smtp_use_tls,
                timeout=s.smtp_timeout_seconds,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise TransportError(f"Could not send mail to {recipients}: {exc}") from exc
        logger.info("Mail sent to %s: %s", recipients, subject)
