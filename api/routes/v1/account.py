"""
api/routes/v1/account.py -- Registration, login, logout and session endpoints.

Routes:
  POST /api/v1/account/register         -- create account, sign in (session cookie)
  POST /api/v1/account/login            -- password login; sets cookie
  POST /api/v1/account/logout           -- revoke session, clear cookie; idempotent
  GET  /api/v1/account/email-available  -- availability check (off by default)
  GET  /api/v1/account/me               -- current session info (requires auth)

Security:
  [H2] POST /login is rate-limited (LOGIN_RATE_LIMIT, default 10/minute per IP).
  [C1] Unknown emails and wrong passwords fail identically (engine handles it).
  [C2] return_url is honored only as a same-origin relative path.
  [M5] Cache-Control: no-store on every response that carries a token.
  Enumeration: email-available discloses registration status, so it is
  disabled unless EMAIL_CHECK_ENABLED=true, and rate-limited when enabled.

Handlers are sync (def): FastAPI runs them in its threadpool, which is where
bcrypt and the blocking SQLAlchemy calls belong.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from api.limiter import email_check_limit, limiter, login_limit
from api.models import (
    EmailAvailabilityResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    SessionResponse,
)
from auth.dependencies import decode_request_session, get_current_session
from auth.errors import NotFound
from auth.models import Session
from auth.service import AuthenticationEngine
from auth.tokens import clear_auth_cookie, set_auth_cookie
from core.config import get_settings

# Auth policy:
# - POST /account/register:        public
# - POST /account/login:           public, rate-limited
# - POST /account/logout:          public -- ending a session needs no prior auth
# - GET  /account/email-available: public, rate-limited, feature-flagged
# - GET  /account/me:              requires auth (get_current_session)
router = APIRouter()


def _safe_return_url(return_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths. [C2]

    Rejects anything that would leave the site after login:
      https://attacker.com, //attacker.com, /\\attacker.com (browsers read
      a backslash as a slash), and values containing control characters.
    """
    if not return_url or not return_url.startswith("/"):
        return "/"
    if return_url.startswith("//") or return_url.startswith("/\\"):
        return "/"
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in return_url):
        return "/"
    return return_url


def _engine(request: Request) -> AuthenticationEngine:
    return request.app.state.auth_engine


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/account/register", response_model=SessionResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and sign the new user in.

    Raises ValidationError (422, field errors) or DuplicateEmail (409); the
    api/main.py handler renders both. Nothing is written on either failure.
    """
    issued = _engine(request).register(body.email, body.password, body.confirm_password)
    resp = JSONResponse(
        status_code=201,
        content=SessionResponse.from_session(issued.session, issued.token).model_dump(),
    )
    set_auth_cookie(resp, issued.token, issued.session, secure=get_settings().secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/account/login", response_model=LoginResponse)
@limiter.limit(login_limit)  # [H2] brute-force mitigation
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Failure modes (rendered by the AuthError handler):
      401 invalid_credentials -- unknown email, wrong password or disabled
          account, all with the same generic message.
      423 locked_out -- with Retry-After seconds until the lockout ends.
    """
    issued = _engine(request).login(body.email, body.password, remember_me=body.remember_me)
    payload = SessionResponse.from_session(issued.session, issued.token).model_dump()
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(**payload, redirect_to=_safe_return_url(body.return_url)).model_dump(),
    )
    set_auth_cookie(resp, issued.token, issued.session, secure=get_settings().secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/account/logout")
def logout(request: Request) -> JSONResponse:
    """Revoke the current session (if any) and clear the cookie.

    Idempotent: calling it without a session, with an expired token, or twice
    in a row all return 200.
    """
    _engine(request).logout(decode_request_session(request))
    resp = JSONResponse(content={"message": "Logged out."})
    clear_auth_cookie(resp)
    return resp


@router.get("/account/email-available", response_model=EmailAvailabilityResponse)
@limiter.limit(email_check_limit)
def email_available(request: Request, email: str = Query(max_length=256)) -> EmailAvailabilityResponse:
    """Report whether email can be used for a new account.

    Returns 404 unless EMAIL_CHECK_ENABLED=true -- with the check off, the
    only place registration status leaks is the register call itself.
    """
    if not get_settings().email_check_enabled:
        raise NotFound()
    return EmailAvailabilityResponse(email=email, available=_engine(request).is_email_available(email))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/account/me", response_model=MeResponse)
def me(session: Session = Depends(get_current_session)) -> MeResponse:
    """Return the identity and role snapshot of the current session."""
    return MeResponse.from_session(session)
