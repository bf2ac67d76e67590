"""
Bin Duty Dashboard — Data Models.

Residents, the rotation pointer, ledger entries, maintenance issues, admin
accounts and the system settings singleton. All of it persists in SQLite
(see src.data.db); these dataclasses are what the core passes around.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator


class Role(str, Enum):
    SUPERUSER = "superuser"
    EDITOR = "editor"
    VIEWER = "viewer"


class DeliveryMethod(str, Enum):
    WHATSAPP = "whatsapp"
    SMS = "sms"
    EMAIL = "email"


class DeliveryStatus(str, Enum):
    SENT = "Sent"
    FAILED = "Failed"


class DispatchStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class IssueStatus(str, Enum):
    REPORTED = "Reported"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"


class LedgerCategory(str, Enum):
    GENERAL = "general"
    RESIDENTS = "residents"
    ROTATION = "rotation"
    REMINDER = "reminder"
    ANNOUNCEMENT = "announcement"
    ISSUES = "issues"
    ADMIN = "admin"
    SETTINGS = "settings"


class LedgerOrder(str, Enum):
    CHRONOLOGICAL = "chronological"
    REVERSE_CHRONOLOGICAL = "reverse-chronological"


@dataclass
class Actor:
    """The caller of an operation, as resolved by the upstream auth layer."""

    email: str
    role: Role


@dataclass
class Contact:
    """Notification addresses for a resident. Any of them may be missing."""

    whatsapp: str | None = None
    sms: str | None = None
    email: str | None = None

    def channels(self) -> Iterator[tuple[DeliveryMethod, str]]:
        """Yield (method, address) for every channel that has an address."""
        for method in DeliveryMethod:
            address = getattr(self, method.value)
            if address:
                yield method, address


@dataclass
class Resident:
    """A resident taking part in the bin duty rotation."""

    id: str
    name: str
    flat_number: str
    contact: Contact = field(default_factory=Contact)
    notes: str | None = None


@dataclass
class DeliveryDetail:
    """Outcome of one delivery attempt to one recipient over one channel."""

    recipient: str
    method: DeliveryMethod
    status: DeliveryStatus
    content: str
    error: str | None = None


@dataclass
class LedgerEntry:
    """One append-only record of a state-changing action."""

    id: int
    timestamp: str                    # ISO 8601, UTC
    message: str
    actor: str | None = None
    category: LedgerCategory = LedgerCategory.GENERAL
    subject: str | None = None
    status: DispatchStatus | None = None
    details: list[DeliveryDetail] = field(default_factory=list)

    def __str__(self) -> str:
        return f"[{self.timestamp}] {self.message}"


@dataclass
class Issue:
    """A maintenance issue reported by a resident."""

    id: str
    reported_by: str
    flat_number: str
    description: str
    status: IssueStatus = IssueStatus.REPORTED
    timestamp: str = ""
    image_url: str | None = None


@dataclass
class AdminUser:
    """An administrator account. The credential is opaque to the core."""

    id: str
    email: str
    role: Role
    credential: str = ""
    created_at: str = ""


DEFAULT_REMINDER_TEMPLATE = (
    "Hi {first_name}, it's your turn to take the bins out this week "
    "(flat {flat_number})."
)
DEFAULT_ANNOUNCEMENT_TEMPLATE = "Hi {first_name}, {message}"


@dataclass
class SystemSettings:
    """System-wide settings singleton."""

    owner_name: str = ""
    owner_contact: str = ""
    report_issue_link: str = ""
    reminder_template: str = DEFAULT_REMINDER_TEMPLATE
    announcement_template: str = DEFAULT_ANNOUNCEMENT_TEMPLATE


@dataclass
class DashboardSnapshot:
    current_duty: str
    next_in_rotation: str
    last_log: str
    last_reminder_run: str


@dataclass
class DispatchReport:
    """Observable result of a reminder or announcement."""

    status: DispatchStatus
    details: list[DeliveryDetail] = field(default_factory=list)
    ledger_entry: LedgerEntry | None = None
