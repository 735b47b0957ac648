"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore, RoleStore and SessionStore are the repositories; _row_to_user /
_row_to_role are the mappers. Engine and route code never touch SQL directly.

All three repositories share one Engine created by create_store_engine(), so
users, roles and revocations live in the same database and role assignments
can reference user ids.

Security:
  All queries use bound parameters. No f-strings in SQL.

Concurrency:
  Every mutating method is a single-row write inside one transaction.
  record_failed_attempt() is a compare-and-set: one UPDATE both increments
  the counter and decides the lockout, guarded by "not currently locked".
  Concurrent wrong-password attempts against one account therefore produce
  the same counter and lockout as some serial order of those attempts.

Timestamps are stored as ISO 8601 UTC strings with fixed microsecond
precision, so string comparison in SQL matches chronological order.

Driver failures (OperationalError / InterfaceError: locked database, lost
connection) are logged here and re-raised as StoreUnavailable. Nothing from
the driver reaches the caller's error message.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    case,
    create_engine,
    event,
    or_,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from auth.errors import AlreadyAssigned, DuplicateEmail, DuplicateRole, NotFound, StoreUnavailable
from auth.models import Role, User, UserRoleAssignment, normalize_name

logger = logging.getLogger("turnstile.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(256), nullable=False),
    Column("normalized_email", String(256), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("failed_attempts", Integer, nullable=False, server_default="0"),
    Column("lockout_until", String(32)),  # NULL = not locked
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
)

_roles = Table(
    "roles",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(256), nullable=False),
    Column("normalized_name", String(256), nullable=False, unique=True),
    Column("created_at", String(32), nullable=False),
)

_user_roles = Table(
    "user_roles",
    metadata,
    Column("user_id", String(32), ForeignKey("users.id"), nullable=False),
    Column("role_id", String(32), ForeignKey("roles.id"), nullable=False),
    Column("assigned_at", String(32), nullable=False),
    UniqueConstraint("user_id", "role_id", name="uq_user_roles_pair"),
)

_revoked_sessions = Table(
    "revoked_sessions",
    metadata,
    Column("session_id", String(64), primary_key=True),
    Column("user_id", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
    Column("revoked_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign keys on every new SQLite connection.

    SQLite PRAGMAs are per-connection and are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def create_store_engine(db_url: str) -> Engine:
    """Create the shared Engine and make sure the schema exists.

    SQLite connections get check_same_thread=False (FastAPI runs sync handlers
    in a threadpool) and a generous busy timeout so concurrent writers queue
    on the database lock instead of failing immediately.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _new_id() -> str:
    return uuid.uuid4().hex


@contextmanager
def _guard(operation: str) -> Iterator[None]:
    """Translate driver-level failures into StoreUnavailable."""
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        logger.error("Store operation %s failed: %s", operation, exc.__class__.__name__, exc_info=exc)
        raise StoreUnavailable() from exc


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        engine = create_store_engine("sqlite:///turnstile.db")
        users = UserStore(engine)
        user = users.create("alice@example.com", hasher.hash("S3cret!pw"))
        users.find_by_email("ALICE@example.com")   # case-insensitive
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, email: str, password_hash: str) -> User:
        """Insert a new user. Raises DuplicateEmail if the normalized email exists.

        The UNIQUE index on normalized_email is the source of truth; two
        concurrent registrations for one address cannot both succeed.
        """
        email = email.strip()
        user = User(
            id=_new_id(),
            email=email,
            normalized_email=normalize_name(email),
            password_hash=password_hash,
            created_at=_iso(_utcnow()),
        )
        with _guard("create_user"):
            try:
                with self.engine.begin() as conn:
                    conn.execute(
                        _users.insert().values(
                            id=user.id,
                            email=user.email,
                            normalized_email=user.normalized_email,
                            password_hash=user.password_hash,
                            failed_attempts=0,
                            is_active=1,
                            created_at=user.created_at,
                        )
                    )
            except IntegrityError as exc:
                raise DuplicateEmail() from exc
        return user

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by normalized email. Returns None if not found."""
        with _guard("find_by_email"), self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(_users.c.normalized_email == normalize_name(email))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with _guard("get_user"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def has_users(self) -> bool:
        with _guard("has_users"), self.engine.connect() as conn:
            row = conn.execute(select(_users.c.id).limit(1)).fetchone()
        return row is not None

    def record_failed_attempt(
        self,
        user_id: str,
        max_attempts: int,
        lockout_seconds: int,
        now: datetime | None = None,
    ) -> User | None:
        """Count one failed login; lock the account when the threshold is reached.

        Compare-and-set: the UPDATE only applies while the account is not
        locked (lockout_until NULL or in the past). When the incremented
        counter reaches max_attempts the same statement sets lockout_until
        and resets the counter to 0, so the account gets a fresh allowance
        once the lockout expires.

        Returns the refreshed User, or None if the update did not apply
        because the account was locked in the meantime (or does not exist).
        """
        now = now or _utcnow()
        now_iso = _iso(now)
        reached = (_users.c.failed_attempts + 1) >= max_attempts
        stmt = (
            _users.update()
            .where(_users.c.id == user_id)
            .where(or_(_users.c.lockout_until.is_(None), _users.c.lockout_until <= now_iso))
            .values(
                failed_attempts=case((reached, 0), else_=_users.c.failed_attempts + 1),
                lockout_until=case((reached, _iso(now + timedelta(seconds=lockout_seconds))), else_=None),
            )
        )
        with _guard("record_failed_attempt"), self.engine.begin() as conn:
            result = conn.execute(stmt)
            if result.rowcount == 0:
                return None
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row)

    def record_success(self, user_id: str, now: datetime | None = None) -> None:
        """Reset the failed-attempt counter, clear lockout, stamp last_login."""
        now = now or _utcnow()
        with _guard("record_success"), self.engine.begin() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(failed_attempts=0, lockout_until=None, last_login=_iso(now))
            )

    def update_password_hash(self, user_id: str, password_hash: str) -> None:
        """Replace the stored hash (used when the configured work factor changes)."""
        with _guard("update_password_hash"), self.engine.begin() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(password_hash=password_hash))

    def set_active(self, user_id: str, is_active: bool) -> bool:
        """Soft-disable or re-enable an account. Returns False if user_id was not found."""
        with _guard("set_active"), self.engine.begin() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(is_active=1 if is_active else 0)
            )
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Role store
# ---------------------------------------------------------------------------


class RoleStore:
    """Repository for Role definitions and user -> role assignments."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_role(self, name: str) -> Role:
        """Insert a role. Raises DuplicateRole if the name exists (case-insensitive)."""
        name = name.strip()
        role = Role(id=_new_id(), name=name, normalized_name=normalize_name(name), created_at=_iso(_utcnow()))
        with _guard("create_role"):
            try:
                with self.engine.begin() as conn:
                    conn.execute(
                        _roles.insert().values(
                            id=role.id,
                            name=role.name,
                            normalized_name=role.normalized_name,
                            created_at=role.created_at,
                        )
                    )
            except IntegrityError as exc:
                raise DuplicateRole() from exc
        return role

    def get_by_name(self, name: str) -> Role | None:
        with _guard("get_role"), self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.normalized_name == normalize_name(name))).fetchone()
        return _row_to_role(row) if row is not None else None

    def list_roles(self) -> list[Role]:
        """Return all roles ordered by name."""
        with _guard("list_roles"), self.engine.connect() as conn:
            rows = conn.execute(_roles.select().order_by(_roles.c.normalized_name)).fetchall()
        return [_row_to_role(r) for r in rows]

    def assign(self, user_id: str, role_id: str) -> UserRoleAssignment:
        """Add user to role and return the new pair.

        Raises NotFound if the user or role does not exist and AlreadyAssigned
        if the pair exists. Both checks run in the inserting transaction; the
        UNIQUE(user_id, role_id) constraint catches the race where two admins
        assign concurrently.
        """
        pair = (_user_roles.c.user_id == user_id) & (_user_roles.c.role_id == role_id)
        with _guard("assign_role"):
            try:
                with self.engine.begin() as conn:
                    if conn.execute(select(_users.c.id).where(_users.c.id == user_id)).fetchone() is None:
                        raise NotFound("User not found.")
                    if conn.execute(select(_roles.c.id).where(_roles.c.id == role_id)).fetchone() is None:
                        raise NotFound("Role not found.")
                    existing = conn.execute(select(_user_roles.c.user_id).where(pair)).fetchone()
                    if existing is not None:
                        raise AlreadyAssigned()
                    conn.execute(
                        _user_roles.insert().values(user_id=user_id, role_id=role_id, assigned_at=_iso(_utcnow()))
                    )
            except IntegrityError as exc:
                raise AlreadyAssigned() from exc
        return UserRoleAssignment(user_id=user_id, role_id=role_id)

    def unassign(self, user_id: str, role_id: str) -> bool:
        """Remove user from role. Returns False if the pair did not exist."""
        with _guard("unassign_role"), self.engine.begin() as conn:
            result = conn.execute(
                _user_roles.delete().where((_user_roles.c.user_id == user_id) & (_user_roles.c.role_id == role_id))
            )
        return result.rowcount > 0

    def roles_of(self, user_id: str) -> frozenset[str]:
        """Return the names of every role assigned to user_id."""
        stmt = (
            select(_roles.c.name)
            .select_from(_user_roles.join(_roles, _user_roles.c.role_id == _roles.c.id))
            .where(_user_roles.c.user_id == user_id)
        )
        with _guard("roles_of"), self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return frozenset(r.name for r in rows)


# ---------------------------------------------------------------------------
# Session revocation store
# ---------------------------------------------------------------------------


class SessionStore:
    """Server-side record of sessions ended by logout.

    Sessions themselves are signed tokens and are not stored. Only revoked
    session ids are kept, and only until the session would have expired
    anyway -- purge_expired() drops the rest.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def revoke(self, session_id: str, user_id: str, expires_at: datetime) -> bool:
        """Record a revocation. Returns False if it was already revoked (idempotent)."""
        with _guard("revoke_session"):
            try:
                with self.engine.begin() as conn:
                    conn.execute(
                        _revoked_sessions.insert().values(
                            session_id=session_id,
                            user_id=user_id,
                            expires_at=_iso(expires_at),
                            revoked_at=_iso(_utcnow()),
                        )
                    )
            except IntegrityError:
                return False
        return True

    def is_revoked(self, session_id: str) -> bool:
        with _guard("is_revoked"), self.engine.connect() as conn:
            row = conn.execute(
                select(_revoked_sessions.c.session_id).where(_revoked_sessions.c.session_id == session_id)
            ).fetchone()
        return row is not None

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete revocations whose session has expired. Returns rows removed."""
        cutoff = _iso(now or _utcnow())
        with _guard("purge_revocations"), self.engine.begin() as conn:
            result = conn.execute(_revoked_sessions.delete().where(_revoked_sessions.c.expires_at <= cutoff))
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        normalized_email=row.normalized_email,
        password_hash=row.password_hash,
        failed_attempts=row.failed_attempts,
        lockout_until=_parse_iso(row.lockout_until),
        is_active=bool(row.is_active),
        created_at=row.created_at,
        last_login=row.last_login,
    )


def _row_to_role(row) -> Role:
    return Role(
        id=row.id,
        name=row.name,
        normalized_name=row.normalized_name,
        created_at=row.created_at,
    )
