"""
Bin Duty Dashboard — Rotation Scheduler.

Owns the rotation pointer: an offset into the *current* resident ordering
that says whose turn it is. The pointer is not a resident id, so it is
re-validated after every deletion.

Deletion policy is shift-down: removing someone before the pointer moves it
down by one, removing the current resident hands the turn to their successor,
removing someone after it changes nothing. The rotation order is preserved.
"""

from __future__ import annotations

import logging

from src.core.authz import Action, require
from src.core.errors import EmptyRegistryError, NotFoundError
from src.core.household import Household
from src.core.ledger import EventLedger
from src.data.db import HouseholdTx
from src.data.models import Actor, LedgerCategory, Resident

logger = logging.getLogger(__name__)


def clamp_index(index: int, size: int) -> int:
    """Return *index* if it is a valid offset into *size* items, else 0."""
    if size <= 0 or index < 0 or index >= size:
        return 0
    return index


def index_after_deletion(current_index: int, deleted_position: int, remaining: int) -> int:
    """Pointer value after removing the resident at *deleted_position*.

    *remaining* is the registry size after the deletion.
    """
    if remaining <= 0:
        return 0
    if deleted_position < current_index:
        current_index -= 1
    return clamp_index(current_index, remaining)


class RotationScheduler:
    def __init__(self, household: Household, ledger: EventLedger) -> None:
        self._household = household
        self._ledger = ledger

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _current_in(tx: HouseholdTx) -> tuple[list[Resident], int]:
        residents = tx.list_residents()
        if not residents:
            raise EmptyRegistryError("There are no residents in the rotation")
        return residents, clamp_index(tx.get_rotation_index(), len(residents))

    def current(self) -> Resident:
        """Resident currently on bin duty. Raises EmptyRegistryError."""
        with self._household.read() as tx:
            return self.current_in(tx)

    def current_in(self, tx: HouseholdTx) -> Resident:
        residents, index = self._current_in(tx)
        return residents[index]

    def next_in_rotation(self) -> Resident:
        """Resident after the current one, wrapping around."""
        with self._household.read() as tx:
            residents, index = self._current_in(tx)
        return residents[(index + 1) % len(residents)]

    def current_and_next(self) -> tuple[Resident, Resident]:
        """Both rotation reads from one consistent snapshot."""
        with self._household.read() as tx:
            residents, index = self._current_in(tx)
        return residents[index], residents[(index + 1) % len(residents)]

    def current_index(self) -> int:
        with self._household.read() as tx:
            return clamp_index(tx.get_rotation_index(), len(tx.list_residents()))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def skip(self, actor: Actor) -> Resident | None:
        """Pass the turn to the next resident.

        Returns the new current resident, or None on an empty registry (no-op,
        nothing logged).
        """
        require(actor, Action.MUTATE_RESIDENTS)
        async with self._household.mutation() as tx:
            residents = tx.list_residents()
            if not residents:
                logger.info("Skip requested with no residents; ignoring")
                return None
            old = clamp_index(tx.get_rotation_index(), len(residents))
            new = (old + 1) % len(residents)
            tx.set_rotation_index(new)
            self._ledger.append(
                tx,
                f"Turn skipped: {residents[old].name} → {residents[new].name}",
                actor=actor,
                category=LedgerCategory.ROTATION,
            )
        return residents[new]

    async def set_current(self, actor: Actor, resident_id: str) -> Resident:
        """Hand the turn to *resident_id*. Raises NotFoundError if absent."""
        require(actor, Action.MUTATE_RESIDENTS)
        async with self._household.mutation() as tx:
            residents = tx.list_residents()
            position = next(
                (i for i, r in enumerate(residents) if r.id == resident_id), None,
            )
            if position is None:
                raise NotFoundError(f"Resident {resident_id} not found")
            tx.set_rotation_index(position)
            self._ledger.append(
                tx,
                f"Current turn set to {residents[position].name}",
                actor=actor,
                category=LedgerCategory.ROTATION,
            )
        return residents[position]

    def revalidate_after_deletion(self, tx: HouseholdTx, deleted_position: int) -> int:
        """Re-point the rotation after a deletion, inside the deleting transaction.

        Returns the new index.
        """
        remaining = len(tx.list_residents())
        old = tx.get_rotation_index()
        new = index_after_deletion(old, deleted_position, remaining)
        if new != old:
            tx.set_rotation_index(new)
            logger.debug("Rotation index %d -> %d after deletion at %d", old, new, deleted_position)
        return new

    def reset_if_empty(self, tx: HouseholdTx) -> None:
        """Point at the first resident if the registry was empty before an add."""
        if not tx.list_residents():
            tx.set_rotation_index(0)
