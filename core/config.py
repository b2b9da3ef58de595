"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for ShellGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. database_url -> DATABASE_URL).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. Used for the DEBUG-conditional SECRET_KEY rule: dev mode
      generates a key with a warning, production mode refuses to start
      without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. Session cookies are
  HS256 JWTs signed with it, so a short key weakens every session.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("shellgate.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'shellgate.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    # Empty string means "not configured"; the validator below fills or rejects it.
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    # Credentials and the audit log share one database by default. Any
    # SQLAlchemy URL works, e.g. postgresql://user:pw@host:5432/shellgate
    database_url: str = _DEFAULT_DB_URL
    # Upper bound for a single lookup or append against the database.
    db_timeout_seconds: float = Field(default=5.0, gt=0)

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # "plain": stored secret compared by exact equality.
    # "bcrypt": stored secret is a bcrypt hash.
    secret_scheme: Literal["plain", "bcrypt"] = "plain"
    secure_cookies: bool = False
    token_expire_seconds: int = Field(default=3600, gt=0)
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str = "0.0.0.0"  # noqa: S104 # nosec B104 -- listener address, container default
    port: int = 9006

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
