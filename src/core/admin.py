"""
Bin Duty Dashboard — Administration.

Admin accounts and the system settings singleton. Both are superuser-only,
reads included. An admin can never edit or delete their own account, which
also keeps at least one superuser around.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import fields, replace
from datetime import datetime, timezone

from src.core.authz import Action, require
from src.core.errors import ForbiddenError, NotFoundError, ValidationError
from src.core.household import Household
from src.core.ledger import EventLedger
from src.data.models import Actor, AdminUser, LedgerCategory, Role, SystemSettings

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_SETTINGS_FIELDS = frozenset(f.name for f in fields(SystemSettings))

SYSTEM_ACTOR = "system"


def _clean_email(email: str | None) -> str:
    email = (email or "").strip()
    if not _EMAIL_RE.match(email):
        raise ValidationError(f"Invalid email address: {email!r}")
    return email


def _parse_role(role: Role | str) -> Role:
    try:
        return Role(role)
    except ValueError:
        raise ValidationError(f"Unknown role {role!r}") from None


class AdminDirectory:
    def __init__(self, household: Household, ledger: EventLedger) -> None:
        self._household = household
        self._ledger = ledger

    def list(self, actor: Actor) -> list[AdminUser]:
        require(actor, Action.MANAGE_ADMINS)
        with self._household.read() as tx:
            return tx.list_admins()

    async def add(
        self, actor: Actor, email: str, role: Role | str, credential: str = "",
    ) -> AdminUser:
        require(actor, Action.MANAGE_ADMINS)
        admin = AdminUser(
            id=uuid.uuid4().hex,
            email=_clean_email(email),
            role=_parse_role(role),
            credential=credential or "",
            created_at=datetime.now(timezone.utc).isoformat(timespec="microseconds"),
        )
        async with self._household.mutation() as tx:
            if tx.find_admin_by_email(admin.email) is not None:
                raise ValidationError(f"An admin with email {admin.email} already exists")
            tx.insert_admin(admin)
            self._ledger.append(
                tx,
                f"Admin added: {admin.email} ({admin.role.value})",
                actor=actor,
                category=LedgerCategory.ADMIN,
            )
        return admin

    async def update(
        self,
        actor: Actor,
        admin_id: str,
        role: Role | str | None = None,
        email: str | None = None,
        credential: str | None = None,
    ) -> AdminUser:
        require(actor, Action.MANAGE_ADMINS)
        changes: dict = {}
        if role is not None:
            changes["role"] = _parse_role(role)
        if email is not None:
            changes["email"] = _clean_email(email)
        if credential is not None:
            changes["credential"] = credential

        async with self._household.mutation() as tx:
            existing = tx.get_admin(admin_id)
            if existing is None:
                raise NotFoundError(f"Admin {admin_id} not found")
            self._refuse_self(actor, existing, "edit")
            if "email" in changes:
                clash = tx.find_admin_by_email(changes["email"])
                if clash is not None and clash.id != admin_id:
                    raise ValidationError(f"An admin with email {changes['email']} already exists")
            updated = replace(existing, **changes)
            tx.update_admin(updated)
            self._ledger.append(
                tx,
                f"Admin updated: {updated.email} ({updated.role.value})",
                actor=actor,
                category=LedgerCategory.ADMIN,
            )
        return updated

    async def delete(self, actor: Actor, admin_id: str) -> None:
        require(actor, Action.MANAGE_ADMINS)
        async with self._household.mutation() as tx:
            existing = tx.get_admin(admin_id)
            if existing is None:
                raise NotFoundError(f"Admin {admin_id} not found")
            self._refuse_self(actor, existing, "delete")
            tx.delete_admin(admin_id)
            self._ledger.append(
                tx,
                f"Admin deleted: {existing.email}",
                actor=actor,
                category=LedgerCategory.ADMIN,
            )

    async def bootstrap_superuser(self, email: str, credential: str = "") -> AdminUser | None:
        """Create the first superuser. Returns None if any admin already exists."""
        admin = AdminUser(
            id=uuid.uuid4().hex,
            email=_clean_email(email),
            role=Role.SUPERUSER,
            credential=credential,
            created_at=datetime.now(timezone.utc).isoformat(timespec="microseconds"),
        )
        async with self._household.mutation() as tx:
            if tx.list_admins():
                logger.info("Admins already exist; bootstrap skipped")
                return None
            tx.insert_admin(admin)
            self._ledger.append(
                tx,
                f"Initial superuser created: {admin.email}",
                actor=SYSTEM_ACTOR,
                category=LedgerCategory.ADMIN,
            )
        return admin

    @staticmethod
    def _refuse_self(actor: Actor, target: AdminUser, verb: str) -> None:
        if actor.email.strip().lower() == target.email.lower():
            raise ForbiddenError(f"You cannot {verb} your own admin account")


class SettingsService:
    def __init__(self, household: Household, ledger: EventLedger) -> None:
        self._household = household
        self._ledger = ledger

    def get(self, actor: Actor) -> SystemSettings:
        require(actor, Action.MANAGE_SETTINGS)
        with self._household.read() as tx:
            return tx.get_settings()

    async def update(self, actor: Actor, **changes) -> SystemSettings:
        require(actor, Action.MANAGE_SETTINGS)
        unknown = set(changes) - _SETTINGS_FIELDS
        if unknown:
            raise ValidationError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
        changes = {k: (v or "").strip() for k, v in changes.items()}
        for key in ("reminder_template", "announcement_template"):
            if key in changes and not changes[key]:
                raise ValidationError(f"{key} must not be empty")

        async with self._household.mutation() as tx:
            current = tx.get_settings()
            changed = sorted(k for k, v in changes.items() if getattr(current, k) != v)
            updated = replace(current, **changes)
            if changed:
                tx.save_settings(updated)
                self._ledger.append(
                    tx,
                    f"Settings updated: {', '.join(changed)}",
                    actor=actor,
                    category=LedgerCategory.SETTINGS,
                )
        return updated
