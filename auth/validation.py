"""
auth/validation.py -- Explicit input validation for registration.

validate_registration() collects every problem into a field -> messages map
instead of stopping at the first one, so the API can show all field errors
at once. AuthenticationEngine.register() calls it before hashing or touching
the store; nothing is written when it raises.

Messages use the wording of the ASP.NET Identity password validators.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from auth.errors import ValidationError
from auth.passwords import MAX_PASSWORD_BYTES
from core.config import Settings

# Deliberately permissive: one "@", no whitespace, a dot in the domain part.
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MAX_EMAIL_LENGTH = 256
_MAX_ROLE_NAME_LENGTH = 256


@dataclass(frozen=True)
class PasswordPolicy:
    required_length: int = 8
    require_digit: bool = True
    require_lowercase: bool = True
    require_uppercase: bool = True
    require_non_alphanumeric: bool = True
    required_unique_chars: int = 4

    @classmethod
    def from_settings(cls, settings: Settings) -> "PasswordPolicy":
        return cls(
            required_length=settings.password_required_length,
            require_digit=settings.password_require_digit,
            require_lowercase=settings.password_require_lowercase,
            require_uppercase=settings.password_require_uppercase,
            require_non_alphanumeric=settings.password_require_non_alphanumeric,
            required_unique_chars=settings.password_required_unique_chars,
        )


def _is_ascii_alnum(c: str) -> bool:
    return "0" <= c <= "9" or "a" <= c <= "z" or "A" <= c <= "Z"


def check_password(password: str, policy: PasswordPolicy) -> list[str]:
    """Return every policy violation for password (empty list = acceptable)."""
    errors: list[str] = []
    if len(password) < policy.required_length:
        errors.append(f"Passwords must be at least {policy.required_length} characters.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        errors.append(f"Passwords must be at most {MAX_PASSWORD_BYTES} bytes.")
    if policy.require_non_alphanumeric and all(_is_ascii_alnum(c) for c in password):
        errors.append("Passwords must have at least one non alphanumeric character.")
    if policy.require_digit and not any("0" <= c <= "9" for c in password):
        errors.append("Passwords must have at least one digit ('0'-'9').")
    if policy.require_lowercase and not any("a" <= c <= "z" for c in password):
        errors.append("Passwords must have at least one lowercase ('a'-'z').")
    if policy.require_uppercase and not any("A" <= c <= "Z" for c in password):
        errors.append("Passwords must have at least one uppercase ('A'-'Z').")
    if len(set(password)) < policy.required_unique_chars:
        errors.append(f"Passwords must use at least {policy.required_unique_chars} different characters.")
    return errors


def check_email(email: str) -> list[str]:
    email = email.strip()
    if not email:
        return ["The Email field is required."]
    if len(email) > _MAX_EMAIL_LENGTH or not _EMAIL_RE.match(email):
        return ["The Email field is not a valid e-mail address."]
    return []


def validate_registration(email: str, password: str, confirm_password: str, policy: PasswordPolicy) -> None:
    """Raise ValidationError with all field errors, or return None if the input is acceptable."""
    field_errors: dict[str, list[str]] = {}

    email_errors = check_email(email)
    if email_errors:
        field_errors["email"] = email_errors

    password_errors = check_password(password, policy)
    if password_errors:
        field_errors["password"] = password_errors

    if password != confirm_password:
        field_errors["confirm_password"] = ["The password and confirmation password do not match."]

    if field_errors:
        raise ValidationError(field_errors)


def validate_role_name(name: str) -> str:
    """Return the trimmed role name or raise ValidationError."""
    name = name.strip()
    if not name:
        raise ValidationError({"role_name": ["The Role Name field is required."]})
    if len(name) > _MAX_ROLE_NAME_LENGTH:
        raise ValidationError({"role_name": [f"Role names must be at most {_MAX_ROLE_NAME_LENGTH} characters."]})
    return name
