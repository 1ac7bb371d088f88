"""
core/config.py -- Stockroom settings, read once from the environment.

Every tunable (signing key, token lifetime, bcrypt cost, database URL, CORS
and trusted hosts) is a field on Settings. Nothing else in the tree reads
os.environ; callers use get_settings(), which builds the object on first use
and hands back the same instance afterwards.

Signing key policy:
  [K1] A SECRET_KEY under 32 characters is refused. An HS256 token can be
       attacked offline, so the key has to carry real entropy.

  [K2] With DEBUG unset, a missing SECRET_KEY stops startup. With DEBUG=true
       a random key is generated and a warning is logged; tokens then die
       with the process.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or catalog/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("stockroom.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'stockroom.db'}"


class Settings(BaseSettings):
    """Environment-backed configuration. Field names map to upper-case env vars.

    Every field has a default, so tests only set what they care about.
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
    # Persistence
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Fixed token lifetime; there is no refresh flow, clients log in again.
    token_expire_seconds: int = Field(default=3600, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:3000"]
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Fill in or reject SECRET_KEY per [K1] and [K2]."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Issued tokens will not survive a restart.")
            else:
                raise ValueError(
                    "SECRET_KEY is required when DEBUG is off. "
                    "Export SECRET_KEY (32+ characters) or put it in .env; "
                    "DEBUG=true generates a throwaway key for local use."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the cached Settings instance.

    Tests that change the environment construct Settings directly instead.
    """
    return Settings()
