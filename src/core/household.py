"""
Bin Duty Dashboard — Household aggregate.

The single owner of shared state: the store plus the lock that serializes
every read-modify-write. Components never keep their own copy of residents,
the rotation pointer or the ledger; they open a mutation() or a read() on the
household they were given.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterator

from src.data.db import HouseholdDB, HouseholdTx

logger = logging.getLogger(__name__)


class Household:
    """Lock-guarded household store injected into every engine component."""

    def __init__(self, db: HouseholdDB) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def mutation(self) -> AsyncIterator[HouseholdTx]:
        """Exclusive critical section over registry + pointer + ledger.

        The block runs in one transaction: it either commits as a whole or
        rolls back as a whole.
        """
        async with self._lock:
            with self._db.transaction() as tx:
                yield tx

    @contextmanager
    def read(self) -> Iterator[HouseholdTx]:
        """Consistent read-only view; does not take the mutation lock."""
        with self._db.transaction() as tx:
            yield tx
