"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. "access_token" cookie -- set by login/register for browser clients.
  2. Authorization: Bearer <token> header -- API clients.

A decoded Session is accepted only if it is not revoked (logout) and its
user still exists and is active. Roles are NOT re-read: authorization runs
on the snapshot carried by the session (see auth/authorization.py).

try_get_session() is the soft variant (returns None on failure).
get_current_session() wraps it and raises Unauthenticated (401).
require_roles() builds a dependency that raises AuthorizationDenied (403).

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Request

from auth.authorization import Decision, authorize
from auth.errors import AuthorizationDenied, Unauthenticated
from auth.models import Session
from auth.tokens import COOKIE_NAME
from core.config import get_settings

logger = logging.getLogger("turnstile.auth.dependencies")


def _request_token(request: Request) -> str | None:
    token: str | None = request.cookies.get(COOKIE_NAME)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def decode_request_session(request: Request) -> Session | None:
    """Return the signed, unexpired Session the request carries, or None.

    Does not consult revocations or the user record; logout uses this so a
    token is revoked even when its user is currently disabled.
    """
    token = _request_token(request)
    if token is None:
        return None
    session = request.app.state.auth_engine.codec.decode(token)
    if session is None or session.is_expired():
        return None
    return session


def try_get_session(request: Request) -> Session | None:
    """Authenticate the request. Returns the Session or None; never raises for bad tokens."""
    session = decode_request_session(request)
    if session is None:
        return None
    state = request.app.state
    if state.session_store.is_revoked(session.session_id):
        return None
    user = state.user_store.get_by_id(session.user_id)
    if user is None or not user.is_active:
        return None
    return session


def get_current_session(request: Request) -> Session:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(session: Session = Depends(get_current_session)): ...
    """
    session = try_get_session(request)
    if session is None:
        raise Unauthenticated()
    return session


def require_roles(*roles: str) -> Callable[[Request], Session]:
    """Build a dependency admitting sessions that hold any of roles.

    With no roles the dependency only requires authentication.
    """

    def dependency(request: Request) -> Session:
        session = get_current_session(request)
        if authorize(session, roles) is Decision.DENIED:
            logger.warning(
                "Denied %s %s for user %s (requires one of %s)",
                request.method,
                request.url.path,
                session.user_id,
                sorted(roles),
            )
            raise AuthorizationDenied()
        return session

    return dependency


def require_admin(request: Request) -> Session:
    """Require the configured admin role (ADMIN_ROLE, default "Admin")."""
    return require_roles(get_settings().admin_role)(request)
