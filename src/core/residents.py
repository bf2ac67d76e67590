"""
Bin Duty Dashboard — Resident Registry.

Ordered directory of residents with stable opaque ids. Residents are appended
to the end of the rotation; deleting one re-points the rotation in the same
transaction.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace

from src.core.authz import Action, require
from src.core.errors import NotFoundError, ValidationError
from src.core.household import Household
from src.core.ledger import EventLedger
from src.core.rotation import RotationScheduler
from src.data.models import Actor, Contact, LedgerCategory, Resident

logger = logging.getLogger(__name__)

_UPDATABLE = frozenset({"name", "flat_number", "notes", "contact"})


def _clean_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Resident name must not be empty")
    return name


def _coerce_contact(contact: Contact | dict | None) -> Contact:
    if contact is None:
        return Contact()
    if isinstance(contact, Contact):
        return contact
    unknown = set(contact) - {"whatsapp", "sms", "email"}
    if unknown:
        raise ValidationError(f"Unknown contact field(s): {', '.join(sorted(unknown))}")
    return Contact(**{k: (v or None) for k, v in contact.items()})


class ResidentRegistry:
    def __init__(
        self,
        household: Household,
        ledger: EventLedger,
        rotation: RotationScheduler,
    ) -> None:
        self._household = household
        self._ledger = ledger
        self._rotation = rotation

    def list(self) -> list[Resident]:
        with self._household.read() as tx:
            return tx.list_residents()

    def get(self, resident_id: str) -> Resident:
        with self._household.read() as tx:
            resident = tx.get_resident(resident_id)
        if resident is None:
            raise NotFoundError(f"Resident {resident_id} not found")
        return resident

    async def add(
        self,
        actor: Actor,
        name: str,
        flat_number: str = "",
        contact: Contact | dict | None = None,
        notes: str | None = None,
    ) -> Resident:
        """Add a resident at the end of the rotation."""
        require(actor, Action.MUTATE_RESIDENTS)
        resident = Resident(
            id=uuid.uuid4().hex,
            name=_clean_name(name),
            flat_number=(flat_number or "").strip(),
            contact=_coerce_contact(contact),
            notes=notes or None,
        )
        async with self._household.mutation() as tx:
            self._rotation.reset_if_empty(tx)
            tx.insert_resident(resident)
            self._ledger.append(
                tx,
                f"Resident added: {resident.name} (flat {resident.flat_number or '-'})",
                actor=actor,
                category=LedgerCategory.RESIDENTS,
            )
        return resident

    async def update(self, actor: Actor, resident_id: str, **changes) -> Resident:
        """Apply a partial update (name, flat_number, notes, contact)."""
        require(actor, Action.MUTATE_RESIDENTS)
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValidationError(f"Unknown resident field(s): {', '.join(sorted(unknown))}")
        if "name" in changes:
            changes["name"] = _clean_name(changes["name"])
        if "contact" in changes:
            changes["contact"] = _coerce_contact(changes["contact"])
        if "flat_number" in changes:
            changes["flat_number"] = (changes["flat_number"] or "").strip()

        async with self._household.mutation() as tx:
            existing = tx.get_resident(resident_id)
            if existing is None:
                raise NotFoundError(f"Resident {resident_id} not found")
            updated = replace(existing, **changes)
            tx.update_resident(updated)
            self._ledger.append(
                tx,
                f"Resident updated: {updated.name}",
                actor=actor,
                category=LedgerCategory.RESIDENTS,
            )
        return updated

    async def delete(self, actor: Actor, resident_id: str) -> None:
        require(actor, Action.MUTATE_RESIDENTS)
        async with self._household.mutation() as tx:
            residents = tx.list_residents()
            position = next(
                (i for i, r in enumerate(residents) if r.id == resident_id), None,
            )
            if position is None:
                raise NotFoundError(f"Resident {resident_id} not found")
            removed = residents[position]
            tx.delete_resident(resident_id)
            self._rotation.revalidate_after_deletion(tx, position)
            self._ledger.append(
                tx,
                f"Resident deleted: {removed.name}",
                actor=actor,
                category=LedgerCategory.RESIDENTS,
            )
