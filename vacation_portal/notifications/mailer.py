"""Outbound e-mail — the ``Mailer`` capability and its SMTP / console backends.

``send`` never raises: transport failures are logged and returned as an
undelivered ``DeliveryResult`` so a mutation can succeed with a
partial-failure flag.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional, Protocol, Sequence

from vacation_portal.common.exceptions import MailDeliveryError
from vacation_portal.config import Settings
from vacation_portal.notifications.schemas import DeliveryResult

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    async def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        cc: Optional[Sequence[str]] = None,
    ) -> DeliveryResult:
        ...


class SmtpMailer:
    """Send HTML mail through an SMTP relay (blocking client run in a worker thread)."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        from_address: str,
        from_name: str = "",
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address
        self.from_name = from_name
        self.timeout = timeout

    def _build_message(
        self,
        to: str,
        subject: str,
        html_body: str,
        cc: Sequence[str],
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_address))
        msg["To"] = to
        if cc:
            msg["Cc"] = ", ".join(cc)
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def _deliver(self, msg: MIMEMultipart) -> None:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(f"SMTP error: {exc}") from exc

    async def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        cc: Optional[Sequence[str]] = None,
    ) -> DeliveryResult:
        msg = self._build_message(to, subject, html_body, list(cc or []))
        try:
            await asyncio.to_thread(self._deliver, msg)
        except MailDeliveryError as exc:
            logger.warning("Email to %s failed: %s", to, exc)
            return DeliveryResult(delivered=False, error=str(exc))
        logger.info("Email sent to %s: %s", to, subject)
        return DeliveryResult(delivered=True)


class ConsoleMailer:
    """Development backend: log the message instead of sending it."""

    async def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        cc: Optional[Sequence[str]] = None,
    ) -> DeliveryResult:
        logger.info(
            "Email (console) to=%s cc=%s subject=%r (%d chars)",
            to, ",".join(cc or []), subject, len(html_body),
        )
        return DeliveryResult(delivered=True)


def build_mailer(config: Settings) -> Mailer:
    """Pick the mail backend named by ``MAIL_BACKEND``."""
    if config.MAIL_BACKEND == "smtp":
        return SmtpMailer(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USERNAME,
            password=config.SMTP_PASSWORD,
            use_tls=config.SMTP_USE_TLS,
            from_address=config.MAIL_FROM_ADDRESS,
            from_name=config.MAIL_FROM_NAME,
        )
    if config.MAIL_BACKEND != "console":
        logger.warning("Unknown MAIL_BACKEND %r, falling back to console", config.MAIL_BACKEND)
    return ConsoleMailer()
