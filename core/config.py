"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Folio happen here. No module should call
os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode generates a SECRET_KEY with a warning; production mode
      refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing relies on
  key entropy -- a short key weakens every issued token.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a hard
  startup failure, and POST /auth/create-admin is disabled.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
content/, or mail/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("folio.config")


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

    # ------------------------------------------------------------------
    # Bearer tokens
    # ------------------------------------------------------------------

    token_expire_seconds: int = 7 * 24 * 3600
    # Tokens with less remaining lifetime than this are re-issued via X-New-Token.
    token_refresh_threshold_seconds: int = 24 * 3600
    token_issuer: str = "folio-api"
    token_audience: str = "folio-client"
    # bcrypt cost factor. Tests lower this to the minimum (4) for speed.
    password_hash_rounds: int = 12

    # ------------------------------------------------------------------
    # Lockout
    # ------------------------------------------------------------------

    max_failed_logins: int = 5
    lockout_seconds: int = 2 * 3600

    # ------------------------------------------------------------------
    # Email verification
    # ------------------------------------------------------------------

    verification_expire_seconds: int = 24 * 3600
    resend_cooldown_seconds: int = 60

    # ------------------------------------------------------------------
    # Mail (empty SMTP_HOST = dev mode, links are logged instead of sent)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_timeout_seconds: float = 10.0
    email_from: str = "no-reply@folio.local"
    contact_notify_to: str = ""
    # Used for verification links when the request carries no Origin header.
    public_origin: str = ""

    # ------------------------------------------------------------------
    # Admin bootstrap defaults (POST /auth/create-admin and `main.py create-admin`)
    # ------------------------------------------------------------------

    admin_email: str = ""
    admin_password: str = ""
    admin_name: str = "Portfolio Admin"

    # ------------------------------------------------------------------
    # Storage (empty string = SQLite file beside the store module)
    # ------------------------------------------------------------------

    auth_db_url: str = ""
    content_db_url: str = ""
    store_timeout_seconds: float = 5.0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
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
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.email_from)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    All modules should call get_settings() rather than constructing Settings()
    directly. In tests: call get_settings.cache_clear() if you need to inject
    different environment variables.
    """
    return Settings()
