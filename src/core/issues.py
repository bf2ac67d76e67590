"""
Bin Duty Dashboard — Issue Workflow.

Maintenance issues move forward only:

    Reported -> In Progress -> Resolved
    Reported -> Resolved

Anything else, including re-applying the current status, is rejected with
InvalidTransitionError. Reporting is open to anyone; status changes are gated.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from src.core.authz import Action, require
from src.core.dispatcher import Dispatcher
from src.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from src.core.household import Household
from src.core.ledger import EventLedger
from src.data.models import Actor, Issue, IssueStatus, LedgerCategory

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[IssueStatus, frozenset[IssueStatus]] = {
    IssueStatus.REPORTED: frozenset({IssueStatus.IN_PROGRESS, IssueStatus.RESOLVED}),
    IssueStatus.IN_PROGRESS: frozenset({IssueStatus.RESOLVED}),
    IssueStatus.RESOLVED: frozenset(),
}


def parse_status(value: IssueStatus | str) -> IssueStatus:
    if isinstance(value, IssueStatus):
        return value
    try:
        return IssueStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in IssueStatus)
        raise ValidationError(f"Unknown issue status {value!r} (expected one of: {valid})") from None


class IssueWorkflow:
    def __init__(
        self,
        household: Household,
        ledger: EventLedger,
        dispatcher: Dispatcher | None = None,
    ) -> None:
        self._household = household
        self._ledger = ledger
        self._dispatcher = dispatcher

    async def report(
        self,
        reported_by: str,
        flat_number: str,
        description: str,
        image_url: str | None = None,
    ) -> Issue:
        """File a new issue (no authorization) and tell the owner about it."""
        reported_by = (reported_by or "").strip()
        description = (description or "").strip()
        if not reported_by:
            raise ValidationError("Reporter name must not be empty")
        if not description:
            raise ValidationError("Issue description must not be empty")

        issue = Issue(
            id=uuid.uuid4().hex,
            reported_by=reported_by,
            flat_number=(flat_number or "").strip(),
            description=description,
            image_url=image_url or None,
            status=IssueStatus.REPORTED,
            timestamp=datetime.now(timezone.utc).isoformat(timespec="microseconds"),
        )
        async with self._household.mutation() as tx:
            tx.insert_issue(issue)
            self._ledger.append(
                tx,
                f"Issue reported by {issue.reported_by} (flat {issue.flat_number or '-'}): "
                f"{issue.description}",
                actor=issue.reported_by,
                category=LedgerCategory.ISSUES,
            )

        if self._dispatcher is not None:
            details = await self._dispatcher.notify_owner(
                f"New maintenance issue from {issue.reported_by} "
                f"(flat {issue.flat_number or '-'}): {issue.description}",
                subject="New maintenance issue",
            )
            for detail in details:
                logger.info(
                    "Owner notified of issue %s via %s: %s",
                    issue.id, detail.method.value, detail.status.value,
                )
        return issue

    def list(self, status: IssueStatus | str | None = None) -> list[Issue]:
        """All issues, newest first, optionally filtered by status."""
        wanted = parse_status(status) if status is not None else None
        with self._household.read() as tx:
            return tx.list_issues(wanted)

    def get(self, issue_id: str) -> Issue:
        with self._household.read() as tx:
            issue = tx.get_issue(issue_id)
        if issue is None:
            raise NotFoundError(f"Issue {issue_id} not found")
        return issue

    async def update_status(
        self, actor: Actor, issue_id: str, new_status: IssueStatus | str,
    ) -> Issue:
        require(actor, Action.MUTATE_ISSUES)
        target = parse_status(new_status)

        async with self._household.mutation() as tx:
            issue = tx.get_issue(issue_id)
            if issue is None:
                raise NotFoundError(f"Issue {issue_id} not found")
            if target not in ALLOWED_TRANSITIONS[issue.status]:
                raise InvalidTransitionError(
                    f"Cannot move issue from {issue.status.value!r} to {target.value!r}"
                )
            old = issue.status
            tx.set_issue_status(issue_id, target)
            self._ledger.append(
                tx,
                f"Issue from {issue.reported_by} moved from {old.value} to {target.value}",
                actor=actor,
                category=LedgerCategory.ISSUES,
            )
        issue.status = target
        return issue
