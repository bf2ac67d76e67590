"""Twilio notification adapter — implements NotificationPort for SMS and WhatsApp.

Posts to the Twilio Messages REST endpoint with httpx. WhatsApp uses the same
endpoint with "whatsapp:"-prefixed numbers.
"""

from __future__ import annotations

import logging

import httpx

from src.ports.notification_port import DeliveryError

logger = logging.getLogger(__name__)

_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
_TIMEOUT_SECONDS = 10


class TwilioNotifier:
    """Twilio implementation of NotificationPort."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        whatsapp: bool = False,
    ) -> None:
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from = from_number
        self._whatsapp = whatsapp

    def _address(self, number: str) -> str:
        number = number.strip()
        if self._whatsapp and not number.startswith("whatsapp:"):
            return f"whatsapp:{number}"
        return number

    async def send_message(self, address: str, text: str, subject: str = "") -> None:
        # SMS and WhatsApp have no subject line; the subject is folded into the body.
        body = f"{subject}\n\n{text}" if subject else text
        try:
            async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
                resp = await client.post(
                    _MESSAGES_URL.format(sid=self._account_sid),
                    data={
                        "From": self._address(self._from),
                        "To": self._address(address),
                        "Body": body,
                    },
                    auth=(self._account_sid, self._auth_token),
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Twilio delivery to {address} failed: {exc}") from exc

        logger.info(
            "Twilio %s message %s queued for %s",
            "WhatsApp" if self._whatsapp else "SMS", data.get("sid", "?"), address,
        )
