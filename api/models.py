"""
API request and response models for Turnstile REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models only bound sizes and types. Business validation (email format,
password policy, confirmation match) lives in auth/validation.py so that the
engine rejects bad input the same way whether it arrives over HTTP or the CLI.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Role, Session, User

# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    fields is set for validation failures: field name -> list of messages.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: Optional[dict[str, list[str]]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Account -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/account/register."""

    email: str = Field(max_length=256)
    password: str = Field(max_length=255)
    confirm_password: str = Field(max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/account/login."""

    email: str = Field(max_length=256)
    password: str = Field(max_length=255)
    remember_me: bool = False
    return_url: Optional[str] = Field(default=None, max_length=2048)


# ---------------------------------------------------------------------------
# Account -- responses
# ---------------------------------------------------------------------------


class SessionResponse(BaseModel):
    """Issued session. access_token is also set as an httpOnly cookie."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    user_id: str
    email: str
    roles: list[str]
    persistent: bool
    expires_at: str

    @classmethod
    def from_session(cls, session: Session, token: str) -> "SessionResponse":
        return cls(
            access_token=token,
            user_id=session.user_id,
            email=session.email,
            roles=sorted(session.roles),
            persistent=session.persistent,
            expires_at=session.expires_at.isoformat(),
        )


class LoginResponse(SessionResponse):
    """Successful login. redirect_to is the validated return_url, or "/"."""

    redirect_to: str = "/"


class MeResponse(BaseModel):
    """Response for GET /api/v1/account/me."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    roles: list[str]
    issued_at: str
    expires_at: str
    persistent: bool

    @classmethod
    def from_session(cls, session: Session) -> "MeResponse":
        return cls(
            user_id=session.user_id,
            email=session.email,
            roles=sorted(session.roles),
            issued_at=session.issued_at.isoformat(),
            expires_at=session.expires_at.isoformat(),
            persistent=session.persistent,
        )


class EmailAvailabilityResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    available: bool


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


class RoleCreate(BaseModel):
    """Request body for POST /api/v1/admin/roles."""

    role_name: str = Field(max_length=256)


class RoleResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    created_at: str

    @classmethod
    def from_role(cls, role: Role) -> "RoleResponse":
        return cls(id=role.id, name=role.name, created_at=role.created_at or "")


class RoleMemberAdd(BaseModel):
    """Request body for POST /api/v1/admin/roles/{role_name}/members."""

    email: str = Field(max_length=256)


class RoleMemberResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    role: str


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/admin/users/{user_id}."""

    is_active: bool


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    is_active: bool
    failed_attempts: int
    lockout_until: Optional[str]
    created_at: str
    last_login: Optional[str]

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            is_active=user.is_active,
            failed_attempts=user.failed_attempts,
            lockout_until=user.lockout_until.isoformat() if user.lockout_until else None,
            created_at=user.created_at or "",
            last_login=user.last_login,
        )
