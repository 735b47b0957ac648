"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Turnstile happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, bcrypt_rounds -> BCRYPT_ROUNDS).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
       relies on key entropy -- a short key weakens every issued session.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("turnstile.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'turnstile.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # HTTP (list values are JSON in the environment, e.g. ALLOWED_HOSTS='["a","b"]')
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    # Session-scoped login (remember_me=false) and registration sign-in.
    session_expire_seconds: int = 3600
    # Persistent login (remember_me=true). 14 days.
    remember_me_expire_seconds: int = 14 * 24 * 3600
    # How often the lifespan task drops expired revocation records.
    revocation_purge_seconds: int = 3600

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12
    # Upper bound on concurrent hash/verify calls across all request threads.
    hash_concurrency: int = 4

    # ------------------------------------------------------------------
    # Lockout
    # ------------------------------------------------------------------

    lockout_max_failed_attempts: int = 5
    lockout_seconds: int = 300

    # ------------------------------------------------------------------
    # Password policy (defaults match ASP.NET Identity)
    # ------------------------------------------------------------------

    password_required_length: int = 8
    password_require_digit: bool = True
    password_require_lowercase: bool = True
    password_require_uppercase: bool = True
    password_require_non_alphanumeric: bool = True
    password_required_unique_chars: int = 4

    # ------------------------------------------------------------------
    # Rate limiting / enumeration surface
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    # The availability check discloses whether an email is registered.
    # Off by default; see DESIGN.md (open question).
    email_check_enabled: bool = False
    email_check_rate_limit: str = "20/minute"

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    admin_role: str = "Admin"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_policies(self) -> "Settings":
        """Reject lockout, hashing and policy values that cannot work."""
        # bcrypt accepts cost factors 4..31 only.
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        if self.hash_concurrency < 1:
            raise ValueError("HASH_CONCURRENCY must be at least 1.")
        if self.lockout_max_failed_attempts < 1:
            raise ValueError("LOCKOUT_MAX_FAILED_ATTEMPTS must be at least 1.")
        if self.lockout_seconds < 1:
            raise ValueError("LOCKOUT_SECONDS must be at least 1.")
        if self.password_required_length < 1 or self.password_required_unique_chars < 1:
            raise ValueError("Password length and unique-character requirements must be at least 1.")
        if self.session_expire_seconds < 1 or self.remember_me_expire_seconds < 1:
            raise ValueError("Session lifetimes must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
