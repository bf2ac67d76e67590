"""
Bin Duty Dashboard — Engine facade.

Builds every component around one shared Household and answers the dashboard
query. The HTTP layer (or the CLI) holds a single DutyEngine for the process.
"""

from __future__ import annotations

import logging
from typing import Mapping

from src.core.admin import AdminDirectory, SettingsService
from src.core.dispatcher import Dispatcher
from src.core.errors import EmptyRegistryError
from src.core.household import Household
from src.core.issues import IssueWorkflow
from src.core.ledger import EventLedger
from src.core.residents import ResidentRegistry
from src.core.rotation import RotationScheduler
from src.data.db import HouseholdDB
from src.data.models import DashboardSnapshot, DeliveryMethod, LedgerCategory
from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


class DutyEngine:
    """One household, all components."""

    def __init__(
        self,
        db: HouseholdDB,
        channels: Mapping[DeliveryMethod, NotificationPort] | None = None,
        timeout_seconds: float | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self.household = Household(db)
        self.ledger = EventLedger(self.household)
        self.rotation = RotationScheduler(self.household, self.ledger)
        self.residents = ResidentRegistry(self.household, self.ledger, self.rotation)
        self.dispatcher = Dispatcher(
            self.household,
            self.ledger,
            self.rotation,
            channels or {},
            timeout_seconds=timeout_seconds,
            max_attempts=max_attempts,
        )
        self.issues = IssueWorkflow(self.household, self.ledger, self.dispatcher)
        self.admins = AdminDirectory(self.household, self.ledger)
        self.settings = SettingsService(self.household, self.ledger)

    @classmethod
    def from_settings(cls) -> DutyEngine:
        """Engine backed by DATABASE_PATH with the configured delivery channels."""
        from src.adapters.notifier_factory import create_channels

        return cls(HouseholdDB(), channels=create_channels())

    def dashboard(self) -> DashboardSnapshot:
        """Current duty, next in line and latest activity; "N/A" where empty."""
        try:
            on_duty, after = self.rotation.current_and_next()
            current, upcoming = on_duty.name, after.name
        except EmptyRegistryError:
            current = upcoming = NOT_AVAILABLE

        last = self.ledger.latest()
        last_reminder = self.ledger.latest(LedgerCategory.REMINDER)
        return DashboardSnapshot(
            current_duty=current,
            next_in_rotation=upcoming,
            last_log=str(last) if last is not None else NOT_AVAILABLE,
            last_reminder_run=last_reminder.timestamp if last_reminder is not None else NOT_AVAILABLE,
        )
