"""Notifier factory — builds the delivery channels that are configured."""

from __future__ import annotations

import logging

from src.config import settings
from src.data.models import DeliveryMethod
from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


def create_channels() -> dict[DeliveryMethod, NotificationPort]:
    """Return one adapter per configured channel.

    Channels without credentials are left out; the dispatcher records
    deliveries to them as failed.
    """
    channels: dict[DeliveryMethod, NotificationPort] = {}

    if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN:
        from src.adapters.twilio_notifier import TwilioNotifier

        if settings.TWILIO_SMS_FROM:
            channels[DeliveryMethod.SMS] = TwilioNotifier(
                settings.TWILIO_ACCOUNT_SID,
                settings.TWILIO_AUTH_TOKEN,
                settings.TWILIO_SMS_FROM,
            )
        if settings.TWILIO_WHATSAPP_FROM:
            channels[DeliveryMethod.WHATSAPP] = TwilioNotifier(
                settings.TWILIO_ACCOUNT_SID,
                settings.TWILIO_AUTH_TOKEN,
                settings.TWILIO_WHATSAPP_FROM,
                whatsapp=True,
            )

    if settings.SMTP_HOST and settings.SMTP_FROM:
        from src.adapters.email_notifier import EmailNotifier

        channels[DeliveryMethod.EMAIL] = EmailNotifier(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            sender=settings.SMTP_FROM,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
        )

    logger.info(
        "Delivery channels configured: %s",
        ", ".join(m.value for m in channels) or "none",
    )
    return channels
