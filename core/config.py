"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SessionWarden happen here. No module should
call os.getenv() or os.environ.get() directly. The process bootstrap
(api/main.py lifespan, asgi.py) calls get_settings() and passes the values it
needs into component constructors; auth/ never reads Settings itself.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. Secrets have no defaults -- a missing secret is a startup
      failure, never a silently generated key.

Security notes:
  Signing secrets shorter than 32 chars are rejected. HMAC-SHA256 (JWT
  signing and refresh fingerprints) relies on key entropy.

  The access and refresh secrets must differ. A shared key would let a
  refresh token pass signature verification as an access token.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import re
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("sessionwarden.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'sessionwarden.db'}"

# "15m", "1h", "10d" -- the shorthand used by ACCESS_TOKEN_EXPIRY /
# REFRESH_TOKEN_EXPIRY in existing deployments.
_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw])\s*$", re.IGNORECASE)
_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "w": "weeks"}

_MIN_SECRET_LENGTH = 32


def parse_duration(value):
    """Turn an expiry setting into something pydantic can coerce to timedelta.

    Plain integers (or digit strings) are seconds. Shorthand like "15m" or
    "7d" is expanded here. Anything else (ISO 8601 "PT15M", an existing
    timedelta) is passed through for pydantic's own parser.
    """
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return timedelta(seconds=int(stripped))
        match = _DURATION_RE.match(stripped)
        if match:
            amount, unit = match.groups()
            return timedelta(**{_DURATION_UNITS[unit.lower()]: int(amount)})
    return value


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Unlike most settings, the two secrets and the two expiries have no
    defaults: the token lifecycle cannot run on guessed values. Tests build
    Settings(...) with explicit keyword arguments and _env_file=None.
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
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Token lifecycle (required)
    # ------------------------------------------------------------------

    access_token_secret: str
    refresh_token_secret: str
    access_token_expiry: timedelta
    refresh_token_expiry: timedelta

    # Zero grace period unless explicitly configured.
    token_leeway_seconds: int = 0

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # HTTP transport
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    cors_origins: list[str] = []

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("access_token_expiry", "refresh_token_expiry", mode="before")
    @classmethod
    def expand_duration(cls, value):
        return parse_duration(value)

    @model_validator(mode="after")
    def validate_token_settings(self) -> "Settings":
        """Reject configurations that would weaken or break the token lifecycle.

        - Both secrets at least 32 characters.
        - Access and refresh secrets distinct.
        - Both expiries strictly positive.
        - Bcrypt cost within the range the bcrypt library accepts (4..31).
        """
        for name in ("access_token_secret", "refresh_token_secret"):
            if len(getattr(self, name)) < _MIN_SECRET_LENGTH:
                raise ValueError(f"{name.upper()} must be at least {_MIN_SECRET_LENGTH} characters.")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must be different.")
        for name in ("access_token_expiry", "refresh_token_expiry"):
            if getattr(self, name) <= timedelta(0):
                raise ValueError(f"{name.upper()} must be a positive duration.")
        if self.access_token_expiry >= self.refresh_token_expiry:
            logger.warning(
                "ACCESS_TOKEN_EXPIRY (%s) is not shorter than REFRESH_TOKEN_EXPIRY (%s)",
                self.access_token_expiry,
                self.refresh_token_expiry,
            )
        if self.token_leeway_seconds < 0:
            raise ValueError("TOKEN_LEEWAY_SECONDS must not be negative.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Only the process bootstrap calls this. In tests: call
    get_settings.cache_clear() between cases that change the environment.
    """
    return Settings()
