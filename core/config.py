"""
core/config.py -- Inkwell settings, read from the environment by pydantic-settings.

Every environment variable the app understands is a field on Settings; the
rest of the code asks get_settings() rather than reading os.environ. Field
names map one-to-one onto variable names (token_expire_seconds ->
TOKEN_EXPIRE_SECONDS) and a local .env file is honoured when present.

get_settings() is wrapped in lru_cache, so the environment is parsed once
per process. Tests that need different values build Settings() directly or
clear the cache.

Signing key policy (enforced by the after-validator):
  DEBUG=true, no SECRET_KEY   -> a random key is generated and a warning is
                                 logged; issued tokens die with the process.
  DEBUG unset, no SECRET_KEY  -> startup fails.
  any key under 32 characters -> startup fails.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or blog/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("inkwell.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'inkwell.db'}"

# Default session token lifetime.
_SEVEN_DAYS = 7 * 24 * 60 * 60


class Settings(BaseSettings):
    """Runtime configuration. Every field has a default except the signing key."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # "" means unset; the validator replaces it or refuses to start.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    token_expire_seconds: int = _SEVEN_DAYS
    auth_cookie_name: str = "token"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    page_size_default: int = 10
    page_size_max: int = 50

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        See the module docstring for the key rules. The token window must
        also be positive.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "SECRET_KEY not set; generated a temporary key. Issued tokens will not survive a restart."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, parsing the environment on first call."""
    return Settings()
