"""
auth/protocols.py -- Storage and token interfaces the engines depend on.

AuthenticationEngine is written against these Protocols, not against
auth/store.py, so any backend (SQLAlchemy, key-value, in-memory fakes in
tests) can stand behind it. auth/store.py provides the SQLAlchemy
implementations; auth/tokens.py provides the JWT codec.

Layer rule: stdlib + auth.models only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from auth.models import Role, Session, User, UserRoleAssignment


class CredentialStore(Protocol):
    def create(self, email: str, password_hash: str) -> User: ...

    def find_by_email(self, email: str) -> User | None: ...

    def get_by_id(self, user_id: str) -> User | None: ...

    def record_failed_attempt(
        self,
        user_id: str,
        max_attempts: int,
        lockout_seconds: int,
        now: datetime | None = None,
    ) -> User | None:
        """Atomically count a failure. None means the account was already locked."""
        ...

    def record_success(self, user_id: str, now: datetime | None = None) -> None: ...

    def update_password_hash(self, user_id: str, password_hash: str) -> None: ...


class RoleRepository(Protocol):
    def create_role(self, name: str) -> Role: ...

    def get_by_name(self, name: str) -> Role | None: ...

    def assign(self, user_id: str, role_id: str) -> UserRoleAssignment: ...

    def roles_of(self, user_id: str) -> frozenset[str]: ...


class RevocationStore(Protocol):
    def revoke(self, session_id: str, user_id: str, expires_at: datetime) -> bool: ...

    def is_revoked(self, session_id: str) -> bool: ...


class SessionCodec(Protocol):
    """Turns a Session into a bearer string and back.

    decode() returns None for anything it cannot verify (bad signature,
    expired, malformed) -- callers treat that as unauthenticated.
    """

    def encode(self, session: Session) -> str: ...

    def decode(self, token: str) -> Session | None: ...
