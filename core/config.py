"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode generates missing signing keys with a warning,
      production mode refuses to start without them.

Security notes:
  [M6] Signing keys shorter than 32 chars are rejected outright.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY or
       REFRESH_SECRET_KEY is a hard startup failure.

  [M8] Access and refresh tokens are signed with distinct keys. Identical keys
       are rejected so a leaked access key cannot mint refresh tokens.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("campusid.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `secret_key` reads from SECRET_KEY, `debug` reads from DEBUG.
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
    app_version: str = "0.1.0"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    refresh_secret_key: str = ""

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    # Any SQLAlchemy async URL: sqlite+aiosqlite:///..., postgresql+asyncpg://...
    database_url: str = "sqlite+aiosqlite:///./campusid.db"

    # ------------------------------------------------------------------
    # Passwords and tokens
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    verification_token_expire_hours: int = 24
    # Forces the Secure cookie attribute even in DEBUG mode.
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Login throttling
    # ------------------------------------------------------------------

    # Per-email counter backed by the login_attempts table.
    login_max_failed_attempts: int = 5
    login_attempt_window_minutes: int = 15
    # Coarse per-IP limit enforced by slowapi in front of the login route.
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Verification delivery (optional -- empty key means log-only delivery)
    # ------------------------------------------------------------------

    app_base_url: str = "http://localhost:3000"
    resend_api_key: str = ""
    mail_from: str = "Campus ID <no-reply@localhost>"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_signing_keys(self) -> "Settings":
        """Enforce the signing key policy [M6] [M7] [M8].

        Dev mode (DEBUG=true): auto-generate missing keys with a warning.
            Issued tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if either
            key is missing.
        """
        for name in ("secret_key", "refresh_secret_key"):
            if getattr(self, name):
                continue
            if self.debug:
                setattr(self, name, secrets.token_hex(32))
                logger.warning(
                    "WARNING: Using auto-generated %s. Tokens will not persist across restarts.", name.upper()
                )
            else:
                raise ValueError(
                    f"{name.upper()} is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32 or len(self.refresh_secret_key) < 32:
            raise ValueError("SECRET_KEY and REFRESH_SECRET_KEY must be at least 32 characters.")
        if self.secret_key == self.refresh_secret_key:
            raise ValueError("SECRET_KEY and REFRESH_SECRET_KEY must be different.")
        return self

    @property
    def cookies_secure(self) -> bool:
        """Secure attribute for auth cookies: always on outside DEBUG mode."""
        return self.secure_cookies or not self.debug


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
