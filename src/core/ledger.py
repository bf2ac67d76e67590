"""
Bin Duty Dashboard — Event Ledger.

Append-only record of every state-changing action. Entries are written inside
the transaction of the action they describe, so a failed ledger write rolls
the action back with it. Reads may reverse the order for display; storage
order never changes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from src.core.authz import Action, require
from src.core.errors import ValidationError
from src.core.household import Household
from src.data.db import HouseholdTx
from src.data.models import (
    Actor,
    DeliveryDetail,
    DispatchStatus,
    LedgerCategory,
    LedgerEntry,
    LedgerOrder,
)

logger = logging.getLogger(__name__)

_DISPATCH_CATEGORIES = (LedgerCategory.REMINDER, LedgerCategory.ANNOUNCEMENT)


class EventLedger:
    def __init__(self, household: Household) -> None:
        self._household = household

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def append(
        self,
        tx: HouseholdTx,
        message: str,
        actor: Actor | str | None = None,
        category: LedgerCategory = LedgerCategory.GENERAL,
        details: Iterable[DeliveryDetail] = (),
        subject: str | None = None,
        status: DispatchStatus | None = None,
    ) -> LedgerEntry:
        """Append one entry inside the caller's transaction.

        Raises PersistenceError (via the transaction) if the write fails.
        """
        timestamp = self._next_timestamp(tx)
        actor_name = actor.email if isinstance(actor, Actor) else actor
        entry = tx.insert_log(
            timestamp=timestamp,
            message=message,
            actor=actor_name,
            category=category,
            subject=subject,
            status=status,
            details=details,
        )
        logger.info("Ledger #%d [%s] %s", entry.id, category.value, message)
        return entry

    @staticmethod
    def _next_timestamp(tx: HouseholdTx) -> str:
        """Current UTC time, never earlier than the last stored entry."""
        now = datetime.now(timezone.utc).isoformat(timespec="microseconds")
        last = tx.last_log_timestamp()
        if last is not None and last > now:
            return last
        return now

    async def delete_entries(self, actor: Actor, entry_ids: Iterable[int]) -> int:
        """Bulk-delete entries by id. Unknown ids are ignored.

        The deletion is itself recorded as a new entry.
        """
        require(actor, Action.PRUNE_LEDGER)
        try:
            ids = sorted({int(i) for i in entry_ids})
        except (TypeError, ValueError):
            raise ValidationError("Ledger entry ids must be integers") from None
        if not ids:
            raise ValidationError("No ledger entries selected")

        async with self._household.mutation() as tx:
            deleted = tx.delete_logs(ids)
            self.append(
                tx,
                f"{deleted} ledger entr{'y' if deleted == 1 else 'ies'} deleted",
                actor=actor,
                category=LedgerCategory.ADMIN,
            )
        return deleted

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def list(
        self,
        order: LedgerOrder = LedgerOrder.CHRONOLOGICAL,
        category: LedgerCategory | None = None,
        limit: int | None = None,
    ) -> list[LedgerEntry]:
        newest_first = order == LedgerOrder.REVERSE_CHRONOLOGICAL
        categories = [category] if category is not None else None
        with self._household.read() as tx:
            return tx.list_logs(categories=categories, newest_first=newest_first, limit=limit)

    def latest(self, category: LedgerCategory | None = None) -> LedgerEntry | None:
        entries = self.list(LedgerOrder.REVERSE_CHRONOLOGICAL, category=category, limit=1)
        return entries[0] if entries else None

    def history(self) -> list[LedgerEntry]:
        """Reminder and announcement entries, newest first."""
        with self._household.read() as tx:
            return tx.list_logs(categories=_DISPATCH_CATEGORIES, newest_first=True)
