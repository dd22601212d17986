"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for InviteGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. password_salt -> PASSWORD_SALT).

  @model_validator(mode="after"): dev mode (DEBUG=true) generates missing
      secrets with a warning; production mode refuses to start without them.

Security notes:
  SECRET_KEY signs session tokens. Shorter than 32 chars is rejected outright.

  PASSWORD_SALT is mixed into every password hash. It is process-wide, not
  per-user, so changing it invalidates every stored password. A generated dev
  salt therefore only suits throwaway data directories.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or records/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("invitegate.config")

SEVEN_DAYS = 7 * 24 * 60 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Every field has a default, so tests can build Settings(_env_file=None)
    from a few monkeypatched variables. validate_secrets() decides at startup
    whether missing secrets are generated (DEBUG) or fatal.
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
    # below either generates a dev value or raises, so callers never see "".
    secret_key: str = ""
    password_salt: str = ""

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    data_dir: str = "./data"

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    token_expire_seconds: int = SEVEN_DAYS

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_allow_origins: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the SECRET_KEY / PASSWORD_SALT policy.

        Dev mode (DEBUG=true): auto-generate missing values with a warning.
            Tokens and password hashes will not survive a restart.

        Production mode: refuse to start if either value is missing.
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

        if not self.password_salt:
            if self.debug:
                self.password_salt = secrets.token_hex(16)
                logger.warning("Using auto-generated PASSWORD_SALT. Stored passwords will not verify after restart.")
            else:
                raise ValueError(
                    "PASSWORD_SALT is required in production mode. "
                    "Set PASSWORD_SALT in your environment or .env file."
                )

        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
