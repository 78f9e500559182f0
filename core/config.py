"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SecAudit happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. DEBUG mode generates a SECRET_KEY with a
      warning; production mode refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. Session ids are
  stored as HMAC-SHA256(SECRET_KEY, sid) -- a short key weakens that.

  SECRET_KEY must also stay stable across restarts: rotating it invalidates
  every stored session because the HMAC lookups no longer match.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or tenant/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("secaudit.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'secaudit.db'}"


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
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL
    # Empty means "same database as database_url".
    session_database_url: str = ""

    # ------------------------------------------------------------------
    # Sessions and passwords
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    session_cookie_name: str = "sid"
    # Absolute lifetime, fixed at creation. No sliding refresh.
    session_ttl_seconds: int = Field(default=7 * 24 * 60 * 60, gt=0)
    session_purge_interval_seconds: int = Field(default=6 * 60 * 60, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # HTTP boundary
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def effective_session_database_url(self) -> str:
        return self.session_database_url or self.database_url


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    All modules should call get_settings() rather than constructing Settings()
    directly. In tests: call get_settings.cache_clear() between test cases if
    you need to inject different environment variables.
    """
    return Settings()
