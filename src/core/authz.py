"""
Bin Duty Dashboard — Authorization Gate.

Maps a caller's role to allow/deny for a class of actions. Every mutating
operation calls require() before touching state, so a denied call has no
side effect at all.
"""

from __future__ import annotations

import logging
from enum import Enum

from src.core.errors import ForbiddenError
from src.data.models import Actor, Role

logger = logging.getLogger(__name__)


class Action(str, Enum):
    READ = "read"
    MUTATE_RESIDENTS = "mutate_residents"
    MUTATE_ISSUES = "mutate_issues"
    DISPATCH = "dispatch"
    PRUNE_LEDGER = "prune_ledger"
    MANAGE_ADMINS = "manage_admins"
    MANAGE_SETTINGS = "manage_settings"


_STAFF = frozenset({Role.EDITOR, Role.SUPERUSER})
_SUPERUSER_ONLY = frozenset({Role.SUPERUSER})

_POLICY: dict[Action, frozenset[Role]] = {
    Action.READ: frozenset(Role),
    Action.MUTATE_RESIDENTS: _STAFF,
    Action.MUTATE_ISSUES: _STAFF,
    Action.DISPATCH: _STAFF,
    Action.PRUNE_LEDGER: _STAFF,
    Action.MANAGE_ADMINS: _SUPERUSER_ONLY,
    Action.MANAGE_SETTINGS: _SUPERUSER_ONLY,
}


def allowed(role: Role | str, action: Action) -> bool:
    """Return True if *role* may perform *action*. Unknown roles get nothing."""
    try:
        role = Role(role)
    except ValueError:
        return False
    return role in _POLICY[action]


def require(caller: Actor | Role | str, action: Action) -> None:
    """Raise ForbiddenError unless the caller's role permits *action*."""
    role = caller.role if isinstance(caller, Actor) else caller
    if not allowed(role, action):
        who = caller.email if isinstance(caller, Actor) else str(role)
        logger.warning("Denied %s for %s", action.value, who)
        raise ForbiddenError(f"Role {getattr(role, 'value', role)!r} may not {action.value}")
