"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for authgate happen here. No module should
call os.getenv() or os.environ.get() directly. The process builds one Settings
instance at startup (get_settings()) and hands it to every component that
needs configuration: the password hasher, token service, session transport,
principal store and the admission stages all take it as a constructor argument.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  Explicit injection: auth/ and admission/ never call get_settings()
      themselves. Tests construct Settings(...) directly with the values they
      need and build components from it.

  @model_validator(mode="after"): cross-field validation after all fields are
      resolved. Bad policy (unknown role, non-positive limit, short key) stops
      the process at startup instead of surfacing on the first request.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. HS256 token
       signing relies on key entropy -- a short key weakens every token.

  [M7] Outside debug mode a missing SECRET_KEY is a hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/ or admission/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authgate.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'authgate.db'}"

# Roles a caller can be admitted as. "guest" is never stored on a principal;
# it is what the admission pipeline uses when no identity is attached.
PRINCIPAL_ROLES = ("user", "admin")
ADMISSION_ROLES = ("admin", "user", "guest")

BOT_CATEGORIES = ("automated", "headless", "scraper", "search_engine", "unspecified")

_LOCAL_ENVIRONMENTS = {"development", "local", "test"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields except secret_key have defaults. In debug mode secret_key is
    generated when absent, so Settings(debug=True) is enough for local work
    and tests.
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
    environment: str = "development"
    # Empty string is the sentinel for "not configured".
    secret_key: str = ""
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Credentials and tokens
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 10
    token_ttl_seconds: int = 24 * 60 * 60

    # ------------------------------------------------------------------
    # Session cookie
    # ------------------------------------------------------------------

    session_cookie_name: str = "token"
    # None means "derive from environment": secure everywhere except local.
    secure_cookies: Optional[bool] = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    rate_limit_window_seconds: int = 60
    role_limits: dict[str, int] = {"admin": 20, "user": 10, "guest": 5}
    rate_limit_storage_uri: str = "memory://"
    bot_allowed_categories: list[str] = ["search_engine"]
    admission_dry_run: bool = False

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M6][M7].

        Debug mode: auto-generate a random key with a warning. Tokens will not
        survive a restart -- acceptable for local work.

        Otherwise: refuse to start without a key, and reject short keys in
        both modes.
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

    @model_validator(mode="after")
    def validate_admission_policy(self) -> "Settings":
        """Reject an admission policy that would need a silent fallback later."""
        roles = set(self.role_limits)
        if roles != set(ADMISSION_ROLES):
            missing = sorted(set(ADMISSION_ROLES) - roles)
            unknown = sorted(roles - set(ADMISSION_ROLES))
            raise ValueError(f"role_limits must define exactly admin, user and guest (missing={missing}, unknown={unknown})")
        for role, limit in self.role_limits.items():
            if limit < 1:
                raise ValueError(f"role_limits[{role!r}] must be a positive integer, got {limit}")
        if self.rate_limit_window_seconds < 1:
            raise ValueError("rate_limit_window_seconds must be at least 1.")
        unknown_categories = set(self.bot_allowed_categories) - set(BOT_CATEGORIES)
        if unknown_categories:
            raise ValueError(f"Unknown bot categories: {sorted(unknown_categories)}")
        return self

    @model_validator(mode="after")
    def validate_credential_policy(self) -> "Settings":
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("bcrypt_rounds must be between 4 and 31.")
        if self.token_ttl_seconds < 1:
            raise ValueError("token_ttl_seconds must be positive.")
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_local(self) -> bool:
        return self.environment.lower() in _LOCAL_ENVIRONMENTS

    @property
    def cookie_secure(self) -> bool:
        """Whether the session cookie carries the Secure attribute.

        An explicit SECURE_COOKIES wins; otherwise every non-local
        environment gets Secure cookies.
        """
        if self.secure_cookies is not None:
            return self.secure_cookies
        return not self.is_local


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Called once by the API lifespan. Components receive the instance through
    their constructors rather than calling this function.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
