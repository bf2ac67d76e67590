"""SMTP email adapter — implements NotificationPort for the email channel.

smtplib is blocking, so each send runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from src.ports.notification_port import DeliveryError

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 10
_DEFAULT_SUBJECT = "Building notice"


class EmailNotifier:
    """SMTP implementation of NotificationPort."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_tls = use_tls

    def _build(self, address: str, text: str, subject: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject or _DEFAULT_SUBJECT
        msg["From"] = self._sender
        msg["To"] = address
        msg.set_content(text)
        return msg

    def _send_blocking(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=_TIMEOUT_SECONDS) as smtp:
            if self._use_tls:
                smtp.starttls()
            if self._username:
                smtp.login(self._username, self._password)
            smtp.send_message(msg)

    async def send_message(self, address: str, text: str, subject: str = "") -> None:
        msg = self._build(address, text, subject)
        try:
            await asyncio.to_thread(self._send_blocking, msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"Email delivery to {address} failed: {exc}") from exc
        logger.info("Email sent to %s", address)
