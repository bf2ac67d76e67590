"""
Bin Duty Dashboard — Dispatcher.

Renders reminders and announcements and fans them out to every channel on
each recipient's contact card. Each (recipient, channel) attempt is
independent, bounded by a timeout and retried a fixed number of times; a
failing or hanging channel never holds up the others.

Delivery outcomes never raise. They are collected into DeliveryDetail rows
and an aggregate status (completed / partial / failed) that is stored on the
ledger entry for the dispatch.

Delivery happens outside the household lock; only the final ledger write
takes it. Sent messages cannot be recalled, so if that write fails the
PersistenceError carries the DispatchReport.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Mapping

from src.core.authz import Action, require
from src.core.errors import PersistenceError, ValidationError
from src.core.household import Household
from src.core.ledger import EventLedger
from src.core.rotation import RotationScheduler
from src.core.templates import first_name, render
from src.data.models import (
    Actor,
    Contact,
    DeliveryDetail,
    DeliveryMethod,
    DeliveryStatus,
    DispatchReport,
    DispatchStatus,
    LedgerCategory,
    Resident,
)
from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

REMINDER_SUBJECT = "Bin duty reminder"


def aggregate_status(details: Iterable[DeliveryDetail]) -> DispatchStatus:
    """completed if every attempt was sent, partial if some, failed if none."""
    statuses = [d.status for d in details]
    sent = statuses.count(DeliveryStatus.SENT)
    if not statuses or sent == 0:
        return DispatchStatus.FAILED
    if sent == len(statuses):
        return DispatchStatus.COMPLETED
    return DispatchStatus.PARTIAL


def reminder_bindings(resident: Resident) -> dict[str, str]:
    return {"first_name": first_name(resident.name), "flat_number": resident.flat_number}


def announcement_bindings(resident: Resident, message: str) -> dict[str, str]:
    return {"first_name": first_name(resident.name), "message": message}


class Dispatcher:
    def __init__(
        self,
        household: Household,
        ledger: EventLedger,
        rotation: RotationScheduler,
        channels: Mapping[DeliveryMethod, NotificationPort],
        timeout_seconds: float | None = None,
        max_attempts: int | None = None,
    ) -> None:
        if timeout_seconds is None or max_attempts is None:
            from src.config import settings
            timeout_seconds = timeout_seconds or settings.DELIVERY_TIMEOUT_SECONDS
            max_attempts = max_attempts or settings.DELIVERY_MAX_ATTEMPTS

        self._household = household
        self._ledger = ledger
        self._rotation = rotation
        self._channels = dict(channels)
        self._timeout = timeout_seconds
        self._max_attempts = max(1, max_attempts)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def send_reminder(self, actor: Actor, message: str | None = None) -> DispatchReport:
        """Remind the resident on duty, with the template or a custom text.

        Raises EmptyRegistryError when nobody is on duty.
        """
        require(actor, Action.DISPATCH)
        with self._household.read() as tx:
            resident = self._rotation.current_in(tx)
            system_settings = tx.get_settings()

        if message is not None and message.strip():
            text = message.strip()
        else:
            rendered = render(system_settings.reminder_template, reminder_bindings(resident))
            if rendered.passthrough:
                logger.warning(
                    "Reminder template has unbound placeholder(s): %s",
                    ", ".join(rendered.passthrough),
                )
            text = rendered.text

        details = await self._fan_out([(resident.name, resident.contact, text)], REMINDER_SUBJECT)
        status = aggregate_status(details)

        report = DispatchReport(status=status, details=details)
        await self._record(
            report,
            f"Reminder sent to {resident.name}: {text}",
            actor,
            LedgerCategory.REMINDER,
            REMINDER_SUBJECT,
        )
        logger.info("Reminder to %s finished: %s", resident.name, status.value)
        return report

    async def send_announcement(self, actor: Actor, subject: str, message: str) -> DispatchReport:
        """Broadcast *message* to every resident on every channel they have."""
        require(actor, Action.DISPATCH)
        subject = (subject or "").strip()
        message = (message or "").strip()
        if not subject:
            raise ValidationError("Announcement subject must not be empty")
        if not message:
            raise ValidationError("Announcement message must not be empty")

        with self._household.read() as tx:
            residents = tx.list_residents()
            template = tx.get_settings().announcement_template

        batch = [
            (r.name, r.contact, render(template, announcement_bindings(r, message)).text)
            for r in residents
        ]
        details = await self._fan_out(batch, subject)
        status = aggregate_status(details)

        report = DispatchReport(status=status, details=details)
        await self._record(
            report,
            f"Announcement '{subject}' sent to {len(residents)} resident(s)",
            actor,
            LedgerCategory.ANNOUNCEMENT,
            subject,
        )
        logger.info(
            "Announcement '%s' finished: %s (%d deliveries)",
            subject, status.value, len(details),
        )
        return report

    async def notify_owner(self, text: str, subject: str) -> list[DeliveryDetail]:
        """Best-effort message to the property owner's contact from settings."""
        with self._household.read() as tx:
            system_settings = tx.get_settings()

        address = system_settings.owner_contact.strip()
        if not address:
            logger.info("No owner contact configured; skipping owner notification")
            return []
        if "@" in address:
            contact = Contact(email=address)
        else:
            contact = Contact(sms=address)
        owner = system_settings.owner_name or "Owner"
        return await self._fan_out([(owner, contact, text)], subject)

    async def _record(
        self,
        report: DispatchReport,
        message: str,
        actor: Actor,
        category: LedgerCategory,
        subject: str,
    ) -> None:
        """Write the ledger entry for a finished dispatch onto *report*.

        Deliveries cannot be recalled, so a failed write re-raises
        PersistenceError with the report attached.
        """
        try:
            async with self._household.mutation() as tx:
                report.ledger_entry = self._ledger.append(
                    tx,
                    message,
                    actor=actor,
                    category=category,
                    details=report.details,
                    subject=subject,
                    status=report.status,
                )
        except PersistenceError as exc:
            report.ledger_entry = None
            sent = sum(1 for d in report.details if d.status == DeliveryStatus.SENT)
            logger.error(
                "Ledger write failed after %s dispatch (%s, %d of %d delivered): %s",
                category.value, report.status.value, sent, len(report.details), exc,
            )
            raise PersistenceError(
                f"{category.value.capitalize()} delivered ({report.status.value}) "
                f"but not recorded: {exc}",
                report=report,
            ) from exc

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def _fan_out(
        self,
        batch: Iterable[tuple[str, Contact, str]],
        subject: str,
    ) -> list[DeliveryDetail]:
        attempts = [
            self._deliver(recipient, method, address, text, subject)
            for recipient, contact, text in batch
            for method, address in contact.channels()
        ]
        if not attempts:
            return []
        return list(await asyncio.gather(*attempts))

    async def _deliver(
        self,
        recipient: str,
        method: DeliveryMethod,
        address: str,
        text: str,
        subject: str,
    ) -> DeliveryDetail:
        channel = self._channels.get(method)
        if channel is None:
            return DeliveryDetail(
                recipient=recipient,
                method=method,
                status=DeliveryStatus.FAILED,
                content=text,
                error=f"{method.value} channel is not configured",
            )

        error = ""
        for attempt in range(1, self._max_attempts + 1):
            try:
                await asyncio.wait_for(
                    channel.send_message(address, text, subject=subject),
                    timeout=self._timeout,
                )
                return DeliveryDetail(
                    recipient=recipient,
                    method=method,
                    status=DeliveryStatus.SENT,
                    content=text,
                )
            except asyncio.TimeoutError:
                error = f"timed out after {self._timeout:g}s"
            except Exception as exc:
                error = str(exc) or exc.__class__.__name__
            logger.warning(
                "Delivery to %s via %s failed (attempt %d/%d): %s",
                recipient, method.value, attempt, self._max_attempts, error,
            )

        return DeliveryDetail(
            recipient=recipient,
            method=method,
            status=DeliveryStatus.FAILED,
            content=text,
            error=error,
        )
