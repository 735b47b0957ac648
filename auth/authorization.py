"""
auth/authorization.py -- Role-based authorization over a session snapshot.

authorize() is a pure function of the Session it is given. It never queries
the RoleStore: the roles a session carries were snapshotted when it was
issued, so granting or revoking a role takes effect at the user's next login,
not mid-session. That trades immediacy for a store-free check on every
request.

Role names compare case-insensitively, matching how RoleStore enforces
uniqueness ("Admin" and "admin" are the same role).
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from auth.models import Session, normalize_name


class Decision(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


def authorize(session: Session, required_roles: Iterable[str]) -> Decision:
    """ALLOWED iff required_roles is empty or shares at least one role with the session."""
    required = {normalize_name(r) for r in required_roles}
    if not required:
        return Decision.ALLOWED
    held = {normalize_name(r) for r in session.roles}
    return Decision.ALLOWED if held & required else Decision.DENIED
