"""
tests/helpers.py -- Constants and builders shared by the test modules.

Importable as a plain module because pytest puts tests/ on sys.path.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from auth.passwords import PasswordHasher
from auth.service import AuthenticationEngine, LockoutPolicy, SessionPolicy
from auth.store import RoleStore, SessionStore, UserStore, create_store_engine
from auth.tokens import JwtSessionCodec
from auth.validation import PasswordPolicy

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Adm1n!pass"
GOOD_PASSWORD = "Str0ng!pw"
SECRET = "x" * 40


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@dataclass
class Stores:
    users: UserStore
    roles: RoleStore
    sessions: SessionStore


def make_stores(db_url: str = "sqlite:///:memory:") -> Stores:
    engine = create_store_engine(db_url)
    return Stores(users=UserStore(engine), roles=RoleStore(engine), sessions=SessionStore(engine))


def make_engine(stores: Stores, clock: FakeClock | None = None, max_failed_attempts: int = 5) -> AuthenticationEngine:
    return AuthenticationEngine(
        users=stores.users,
        roles=stores.roles,
        revocations=stores.sessions,
        hasher=PasswordHasher(rounds=4, max_concurrency=4),
        codec=JwtSessionCodec(SECRET),
        password_policy=PasswordPolicy(),
        lockout_policy=LockoutPolicy(max_failed_attempts=max_failed_attempts, lockout_seconds=300),
        session_policy=SessionPolicy(session_seconds=3600, remember_me_seconds=14 * 24 * 3600),
        clock=clock or FakeClock(),
    )
