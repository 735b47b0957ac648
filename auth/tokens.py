"""
auth/tokens.py -- Session token codec and cookie helper.

Security design decisions:
  JWT: python-jose with HS256. A token is the signed serialization of a
       Session: sid (random session id), sub (user id), email, roles snapshot,
       persistent flag, iat and exp. Verification returns None on any failure
       -- the dependency layer turns that into a 401.

  Revocation: a JWT cannot be recalled, so logout records the sid in the
       SessionStore and request authentication checks it. Tokens that fail
       signature or expiry checks never reach that lookup.

  Cookie: httpOnly + samesite=lax. Persistent sessions (remember_me) get a
       max-age matching the token expiry; non-persistent sessions get a
       browser-session cookie that disappears when the browser closes.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from jose import JWTError, jwt

from auth.models import Session

logger = logging.getLogger("turnstile.auth.tokens")

_ALGORITHM = "HS256"

COOKIE_NAME = "access_token"


class JwtSessionCodec:
    """SessionCodec backed by HS256-signed JWTs."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key

    def encode(self, session: Session) -> str:
        payload = {
            "sid": session.session_id,
            "sub": session.user_id,
            "email": session.email,
            "roles": sorted(session.roles),
            "persistent": session.persistent,
            "iat": int(session.issued_at.timestamp()),
            "exp": int(session.expires_at.timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def decode(self, token: str) -> Session | None:
        """Decode and verify a token. Returns the Session or None on any failure."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        try:
            return Session(
                session_id=payload["sid"],
                user_id=payload["sub"],
                email=payload["email"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                persistent=bool(payload.get("persistent", False)),
                roles=frozenset(payload.get("roles", [])),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Rejected signed token with malformed claims")
            return None


def set_auth_cookie(response, token: str, session: Session, secure: bool = False) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: only for persistent sessions, matching the token expiry.
    """
    max_age: int | None = None
    if session.persistent:
        max_age = max(0, int((session.expires_at - session.issued_at).total_seconds()))
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(COOKIE_NAME)
