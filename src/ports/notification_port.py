"""Notification port — abstract interface for delivering a message over one channel.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol


class DeliveryError(Exception):
    """Raised when a channel fails to deliver a message."""


class NotificationPort(Protocol):
    """One delivery channel (SMS, WhatsApp, email) used by the dispatcher."""

    async def send_message(self, address: str, text: str, subject: str = "") -> None: ...
