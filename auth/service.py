"""
auth/service.py -- Authentication engine: register, login, logout.

Login state machine, one pass per attempt:

    Start -> CredentialCheck -> LockedOut | InvalidCredential | Authenticated

  1. Look up the user by normalized email. Unknown email: run a dummy verify
     (timing equalization [C1]) and fail with InvalidCredential -- the caller
     cannot tell "no such account" from "wrong password".
  2. lockout_until in the future: LockedOut, without verifying the password.
  3. Wrong password: record_failed_attempt() (atomic compare-and-set). If
     that call reports the account was locked concurrently, LockedOut;
     otherwise InvalidCredential, even on the attempt that triggers the lock.
  4. Disabled account with the right password: InvalidCredential.
  5. Success: reset counter, upgrade the hash if the work factor changed,
     snapshot roles, issue a Session (lifetime from remember_me).

Each outcome is logged under turnstile.auth with the user id, never the
password or token.

Layer rule: no imports from api/. Stores and codec arrive through
auth.protocols, so this module never touches SQL.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from auth.errors import InvalidCredential, LockedOut
from auth.models import Session, User
from auth.passwords import PasswordHasher
from auth.protocols import CredentialStore, RevocationStore, RoleRepository, SessionCodec
from auth.validation import PasswordPolicy, check_email, validate_registration
from core.config import Settings

logger = logging.getLogger("turnstile.auth")


class LoginOutcome(str, Enum):
    AUTHENTICATED = "authenticated"
    INVALID_CREDENTIAL = "invalid_credential"
    LOCKED_OUT = "locked_out"


@dataclass(frozen=True)
class LockoutPolicy:
    max_failed_attempts: int = 5
    lockout_seconds: int = 300


@dataclass(frozen=True)
class SessionPolicy:
    session_seconds: int = 3600
    remember_me_seconds: int = 14 * 24 * 3600


@dataclass(frozen=True)
class IssuedSession:
    """A freshly issued Session together with its bearer token."""

    session: Session
    token: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthenticationEngine:
    def __init__(
        self,
        users: CredentialStore,
        roles: RoleRepository,
        revocations: RevocationStore,
        hasher: PasswordHasher,
        codec: SessionCodec,
        password_policy: PasswordPolicy | None = None,
        lockout_policy: LockoutPolicy | None = None,
        session_policy: SessionPolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.users = users
        self.roles = roles
        self.revocations = revocations
        self.hasher = hasher
        self.codec = codec
        self.password_policy = password_policy or PasswordPolicy()
        self.lockout_policy = lockout_policy or LockoutPolicy()
        self.session_policy = session_policy or SessionPolicy()
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        users: CredentialStore,
        roles: RoleRepository,
        revocations: RevocationStore,
        codec: SessionCodec,
    ) -> "AuthenticationEngine":
        return cls(
            users=users,
            roles=roles,
            revocations=revocations,
            hasher=PasswordHasher(rounds=settings.bcrypt_rounds, max_concurrency=settings.hash_concurrency),
            codec=codec,
            password_policy=PasswordPolicy.from_settings(settings),
            lockout_policy=LockoutPolicy(
                max_failed_attempts=settings.lockout_max_failed_attempts,
                lockout_seconds=settings.lockout_seconds,
            ),
            session_policy=SessionPolicy(
                session_seconds=settings.session_expire_seconds,
                remember_me_seconds=settings.remember_me_expire_seconds,
            ),
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def create_user(self, email: str, password: str, confirm_password: str | None = None) -> User:
        """Validate and persist a new user without signing in.

        Raises ValidationError (nothing written) or DuplicateEmail.
        """
        if confirm_password is None:
            confirm_password = password
        validate_registration(email, password, confirm_password, self.password_policy)
        user = self.users.create(email, self.hasher.hash(password))
        logger.info("Registered user %s", user.id)
        return user

    def register(self, email: str, password: str, confirm_password: str) -> IssuedSession:
        """Create the account and sign the new user in with a non-persistent session."""
        user = self.create_user(email, password, confirm_password)
        return self._issue(user, remember_me=False)

    def is_email_available(self, email: str) -> bool:
        """True when no account uses email (normalized). Malformed emails are never available."""
        if check_email(email):
            return False
        return self.users.find_by_email(email) is None

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    def login(self, email: str, password: str, remember_me: bool = False) -> IssuedSession:
        """Run one login attempt. Raises LockedOut or InvalidCredential on failure."""
        now = self._clock()
        user = self.users.find_by_email(email)
        if user is None:
            self.hasher.verify_dummy(password)
            self._log_outcome(LoginOutcome.INVALID_CREDENTIAL, None, "unknown email")
            raise InvalidCredential()

        if user.is_locked(now):
            self._log_outcome(LoginOutcome.LOCKED_OUT, user.id, "locked")
            raise LockedOut(user.lockout_until)

        if not self.hasher.verify(password, user.password_hash):
            updated = self.users.record_failed_attempt(
                user.id,
                self.lockout_policy.max_failed_attempts,
                self.lockout_policy.lockout_seconds,
                now=now,
            )
            if updated is None:
                # Lost the compare-and-set: another attempt locked the account first.
                current = self.users.get_by_id(user.id)
                if current is not None and current.is_locked(now):
                    self._log_outcome(LoginOutcome.LOCKED_OUT, user.id, "locked concurrently")
                    raise LockedOut(current.lockout_until)
                self._log_outcome(LoginOutcome.INVALID_CREDENTIAL, user.id, "bad password")
                raise InvalidCredential()
            if updated.is_locked(now):
                logger.warning(
                    "Account %s locked until %s after %d failed attempts",
                    user.id,
                    updated.lockout_until.isoformat(),
                    self.lockout_policy.max_failed_attempts,
                )
            self._log_outcome(LoginOutcome.INVALID_CREDENTIAL, user.id, "bad password")
            raise InvalidCredential()

        if not user.is_active:
            self._log_outcome(LoginOutcome.INVALID_CREDENTIAL, user.id, "account disabled")
            raise InvalidCredential()

        self.users.record_success(user.id, now=now)
        if self.hasher.needs_rehash(user.password_hash):
            self.users.update_password_hash(user.id, self.hasher.hash(password))
            logger.info("Upgraded password hash work factor for user %s", user.id)

        issued = self._issue(user, remember_me=remember_me)
        self._log_outcome(LoginOutcome.AUTHENTICATED, user.id, "persistent" if remember_me else "session")
        return issued

    def logout(self, session: Session | None) -> None:
        """Forget session. Safe to call repeatedly or with None."""
        if session is None:
            return
        if self.revocations.revoke(session.session_id, session.user_id, session.expires_at):
            logger.info("Session %s revoked for user %s", session.session_id, session.user_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue(self, user: User, remember_me: bool) -> IssuedSession:
        # Whole seconds: JWT iat/exp claims carry no sub-second part.
        issued_at = self._clock().replace(microsecond=0)
        lifetime = (
            self.session_policy.remember_me_seconds if remember_me else self.session_policy.session_seconds
        )
        session = Session(
            session_id=secrets.token_urlsafe(24),
            user_id=user.id,
            email=user.email,
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=lifetime),
            persistent=remember_me,
            roles=self.roles.roles_of(user.id),
        )
        return IssuedSession(session=session, token=self.codec.encode(session))

    @staticmethod
    def _log_outcome(outcome: LoginOutcome, user_id: str | None, reason: str) -> None:
        logger.info("Login %s (user=%s, %s)", outcome.value, user_id or "-", reason)
