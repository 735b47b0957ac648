"""
auth/errors.py -- Exception taxonomy for the authentication core.

Every failure the stores and engines report is an AuthError subclass. Each
class carries the HTTP status and machine-readable code the API layer uses,
so api/main.py needs exactly one exception handler for the whole family.

Hierarchy:
    AuthError
    ├── ValidationError       422  malformed input, carries field errors
    ├── DuplicateEmail        409
    ├── DuplicateRole         409
    ├── AlreadyAssigned       409
    ├── NotFound              404
    ├── Unauthenticated       401  no valid session on the request
    ├── InvalidCredential     401  deliberately generic
    ├── LockedOut             423  carries the lockout expiry
    ├── AuthorizationDenied   403
    └── StoreUnavailable      503  transient; callers retry with backoff

Messages are safe for end users. Internal details (SQL, driver errors) are
logged by the raiser and never placed on these objects.

Layer rule: stdlib only.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone


class AuthError(Exception):
    status_code: int = 400
    code: str = "auth_error"
    message: str = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def headers(self) -> dict[str, str]:
        """Extra response headers for this error (e.g. Retry-After)."""
        return {}


class ValidationError(AuthError):
    """Input rejected before any store mutation.

    field_errors maps a field name ("email", "password", "confirm_password")
    to the list of human-readable problems found for it.
    """

    status_code = 422
    code = "validation_error"
    message = "One or more fields are invalid."

    def __init__(self, field_errors: dict[str, list[str]]) -> None:
        super().__init__()
        self.field_errors = field_errors


class DuplicateEmail(AuthError):
    status_code = 409
    code = "duplicate_email"
    message = "An account with that email already exists."


class DuplicateRole(AuthError):
    status_code = 409
    code = "duplicate_role"
    message = "Role already exists."


class AlreadyAssigned(AuthError):
    status_code = 409
    code = "already_assigned"
    message = "User is already in that role."


class NotFound(AuthError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


class Unauthenticated(AuthError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class InvalidCredential(AuthError):
    status_code = 401
    code = "invalid_credentials"
    message = "Invalid login attempt."


class LockedOut(AuthError):
    status_code = 423
    code = "locked_out"
    message = "Account is temporarily locked. Try again later."

    def __init__(self, until: datetime) -> None:
        super().__init__()
        self.until = until

    def retry_after_seconds(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        return max(1, math.ceil((self.until - now).total_seconds()))

    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after_seconds())}


class AuthorizationDenied(AuthError):
    status_code = 403
    code = "forbidden"
    message = "You do not have access to this resource."


class StoreUnavailable(AuthError):
    status_code = 503
    code = "store_unavailable"
    message = "Service temporarily unavailable. Please retry."
    retry_after: int = 2

    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}
