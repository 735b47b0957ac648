"""Unit tests for auth/tokens.py -- JWT session codec."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from auth.models import Session
from auth.tokens import JwtSessionCodec

SECRET = "s" * 40


def _session(**overrides) -> Session:
    now = datetime.now(timezone.utc).replace(microsecond=0)
    fields = dict(
        session_id="sid-123",
        user_id="u1",
        email="u@example.com",
        issued_at=now,
        expires_at=now + timedelta(hours=1),
        persistent=True,
        roles=frozenset({"Admin", "User"}),
    )
    fields.update(overrides)
    return Session(**fields)


def test_round_trip():
    codec = JwtSessionCodec(SECRET)
    session = _session()
    assert codec.decode(codec.encode(session)) == session


def test_wrong_key_rejected():
    token = JwtSessionCodec(SECRET).encode(_session())
    assert JwtSessionCodec("t" * 40).decode(token) is None


def test_expired_token_rejected():
    past = datetime.now(timezone.utc).replace(microsecond=0) - timedelta(hours=2)
    codec = JwtSessionCodec(SECRET)
    token = codec.encode(_session(issued_at=past, expires_at=past + timedelta(hours=1)))
    assert codec.decode(token) is None


def test_tampered_token_rejected():
    codec = JwtSessionCodec(SECRET)
    token = codec.encode(_session())
    head, body, sig = token.split(".")
    assert codec.decode(f"{head}.{body}x.{sig}") is None
    assert codec.decode("garbage") is None


def test_signed_token_missing_claims_rejected():
    token = jwt.encode({"sub": "u1", "exp": 9999999999}, SECRET, algorithm="HS256")
    assert JwtSessionCodec(SECRET).decode(token) is None
