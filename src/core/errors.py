"""Error taxonomy for the duty engine.

Everything except PersistenceError is client-facing: it is raised before any
side effect (or inside a transaction that is then rolled back) and can be
shown to the caller verbatim.
"""

from __future__ import annotations


class DutyError(Exception):
    """Base class for all engine errors."""


class ValidationError(DutyError):
    """Bad input, e.g. an empty resident name."""


class NotFoundError(DutyError):
    """An identifier does not exist."""


class EmptyRegistryError(DutyError):
    """A rotation query was made while there are no residents."""


class ForbiddenError(DutyError):
    """The caller's role does not permit the action."""


class InvalidTransitionError(DutyError):
    """An issue status change that the workflow does not allow."""


class PersistenceError(DutyError):
    """The backing store failed. The whole transaction was rolled back.

    When messages had already gone out before the failing write, *report*
    holds the DispatchReport describing them.
    """

    def __init__(self, message: str = "", report=None) -> None:
        super().__init__(message)
        self.report = report
