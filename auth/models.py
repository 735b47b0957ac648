"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and
engines do the work; these own the domain shape.

Layer rule: stdlib only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def normalize_name(value: str) -> str:
    """Canonical case-folded form used for email and role-name uniqueness."""
    return value.strip().casefold()


@dataclass
class User:
    """A registered account.

    password_hash is the full bcrypt string. Its "$2b$" prefix is the
    algorithm tag and the following field is the work factor, so the hash is
    self-describing and needs no separate algorithm column.

    Users are never physically deleted; is_active=False is the soft-disable.
    """

    email: str
    normalized_email: str
    password_hash: str
    id: str | None = None
    failed_attempts: int = 0
    lockout_until: datetime | None = None
    is_active: bool = True
    created_at: str | None = None
    last_login: str | None = None

    def is_locked(self, now: datetime | None = None) -> bool:
        if self.lockout_until is None:
            return False
        return (now or datetime.now(timezone.utc)) < self.lockout_until


@dataclass
class Role:
    name: str
    normalized_name: str
    id: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class UserRoleAssignment:
    user_id: str
    role_id: str


@dataclass(frozen=True)
class Session:
    """Server-issued proof of authentication.

    Immutable once issued. roles is the snapshot taken at issue time --
    role changes take effect on the next login, not mid-session.
    persistent mirrors the remember_me flag: the cookie carries a max-age
    only for persistent sessions.
    """

    session_id: str
    user_id: str
    email: str
    issued_at: datetime
    expires_at: datetime
    persistent: bool = False
    roles: frozenset[str] = field(default_factory=frozenset)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at
