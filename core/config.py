"""
core/config.py -- Centralized AuthKit configuration via pydantic-settings.

All environment variable reads for AuthKit happen here. No module should
call os.getenv() or os.environ.get() directly.

Sources, highest priority first:
  1. Keyword arguments passed to Settings(...) (tests, embedding apps).
  2. Environment variables. Nested models use "__" as the delimiter, e.g.
     COOKIE_OPTIONS__SECURE=false or PASSWORD_POLICY__MIN_LENGTH=12.
  3. .env file in the working directory.
  4. config/config.json, if present. Keys may be written camelCase there
     ("expiresIn", "cookieName", "cookieOptions": {"httpOnly": true}), and
     "secret" is accepted for secret_key.

Settings is frozen. It is validated once at startup (load_settings) and the
resulting value is handed to every component constructor -- components never
look configuration up on their own. Any schema violation surfaces as
ConfigError before a single token can be issued.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. HS256 signing relies
  on key entropy -- a short key weakens every token.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a hard
  startup failure. Dev mode auto-generates one with a warning; tokens then do
  not survive a restart.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from __future__ import annotations

import logging
import re
import secrets
from functools import lru_cache
from typing import Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, JsonConfigSettingsSource, PydanticBaseSettingsSource, SettingsConfigDict

from core.errors import ConfigError

logger = logging.getLogger("authkit.config")

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 60 * 60, "d": 60 * 60 * 24}

DEFAULT_DB_URL = "sqlite:///authkit.db"


def _camel(name: str) -> AliasChoices:
    """Accept a top-level key in either snake_case or camelCase."""
    return AliasChoices(name, to_camel(name))


def parse_duration(value: str) -> int:
    """Convert a "<integer><unit>" string (unit in s/m/h/d) to seconds.

    Raises ConfigError for anything else: TTLs are configuration, so a bad
    value is a deployment defect rather than a per-request condition.
    """
    match = _DURATION_RE.match(value.strip().lower()) if isinstance(value, str) else None
    if match is None:
        raise ConfigError(f"Invalid time format: {value!r}. Expected format: <number>[s|m|h|d]", "invalid_time_format")
    seconds = int(match.group(1)) * _UNIT_SECONDS[match.group(2)]
    if seconds <= 0:
        raise ConfigError(f"Duration must be positive: {value!r}", "invalid_time_format")
    return seconds


# ---------------------------------------------------------------------------
# Nested models
# ---------------------------------------------------------------------------


class CookieOptions(BaseModel):
    """Attribute set applied to one of the two session cookies."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True, extra="forbid")

    http_only: bool = True
    secure: bool = True
    same_site: Literal["Strict", "Lax", "None"] = "Strict"
    max_age: int = Field(default=60 * 60, gt=0)
    path: str = "/"
    domain: Optional[str] = None

    @model_validator(mode="after")
    def _none_requires_secure(self) -> "CookieOptions":
        # Browsers drop SameSite=None cookies that are not Secure.
        if self.same_site == "None" and not self.secure:
            raise ConfigError("SameSite=None cookies must also be Secure")
        return self


class PasswordPolicy(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True, extra="forbid")

    min_length: int = Field(default=8, ge=1)
    max_length: Optional[int] = 64
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_numbers: bool = True
    require_special_characters: bool = True

    @model_validator(mode="after")
    def _bounds(self) -> "PasswordPolicy":
        if self.max_length is not None and self.min_length > self.max_length:
            raise ConfigError(
                f"Invalid password policy: minLength ({self.min_length}) cannot be greater "
                f"than maxLength ({self.max_length})"
            )
        return self


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """AuthKit settings loaded from kwargs, environment, .env and config.json.

    All fields have defaults so Settings(debug=True) can be instantiated in
    test environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        json_file="config/config.json",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    service_name: str = "AuthKit"
    # debug must stay declared before secret_key: the secret validator reads it.
    debug: bool = False
    # Empty string is the sentinel for "not configured".
    secret_key: str = Field(default="", validate_default=True, validation_alias=AliasChoices("secret_key", "secret"))

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    algorithm: Literal["HS256"] = "HS256"
    expires_in: str = Field(default="1h", validation_alias=_camel("expires_in"))
    refresh_expires_in: str = Field(default="7d", validation_alias=_camel("refresh_expires_in"))
    issuer: Optional[str] = None

    # ------------------------------------------------------------------
    # Cookies
    # ------------------------------------------------------------------

    cookie_name: str = Field(default="authkit_token", min_length=1, validation_alias=_camel("cookie_name"))
    refresh_cookie_name: str = Field(
        default="authkit_refresh", min_length=1, validation_alias=_camel("refresh_cookie_name")
    )
    cookie_options: CookieOptions = Field(default=CookieOptions(), validation_alias=_camel("cookie_options"))
    # None means "same as cookie_options, with max_age = refresh TTL".
    refresh_cookie_options: Optional[CookieOptions] = Field(
        default=None, validation_alias=_camel("refresh_cookie_options")
    )

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    password_hash_algorithm: Literal["SHA-512", "bcrypt"] = Field(
        default="SHA-512", validation_alias=_camel("password_hash_algorithm")
    )
    password_salt_length: int = Field(default=32, ge=8, le=256, validation_alias=_camel("password_salt_length"))
    password_policy: PasswordPolicy = Field(default=PasswordPolicy(), validation_alias=_camel("password_policy"))
    email_enumeration_protection: bool = Field(default=True, validation_alias=_camel("email_enumeration_protection"))
    # No verification flow ships here, so the gate defaults off.
    enforce_verified_email: bool = Field(default=False, validation_alias=_camel("enforce_verified_email"))

    # ------------------------------------------------------------------
    # Storage and HTTP
    # ------------------------------------------------------------------

    database_url: str = DEFAULT_DB_URL
    login_rate_limit: str = "10/minute"
    self_registration_enabled: bool = True
    # Browser origins allowed to call the API with credentials (cookies).
    cors_origins: list[str] = Field(default_factory=list)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, value: str, info: ValidationInfo) -> str:
        """Dev mode generates a key with a warning; production refuses to start."""
        if not value:
            if info.data.get("debug"):
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Issued tokens will not survive a restart."
                )
                return secrets.token_hex(32)
            raise ConfigError(
                "SECRET_KEY is required in production mode. "
                "Set SECRET_KEY in your environment or .env file. "
                "To run in development mode, set DEBUG=true."
            )
        if len(value) < 32:
            raise ConfigError("SECRET_KEY must be at least 32 characters.")
        return value

    @field_validator("expires_in", "refresh_expires_in")
    @classmethod
    def validate_duration(cls, value: str) -> str:
        parse_duration(value)
        return value

    @model_validator(mode="after")
    def validate_lifetimes(self) -> "Settings":
        if self.refresh_ttl < self.access_ttl:
            raise ConfigError("refresh_expires_in must not be shorter than expires_in")
        if self.cookie_name == self.refresh_cookie_name:
            raise ConfigError("cookie_name and refresh_cookie_name must differ")
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def access_ttl(self) -> int:
        """Access token lifetime in seconds."""
        return parse_duration(self.expires_in)

    @property
    def refresh_ttl(self) -> int:
        """Refresh token lifetime in seconds."""
        return parse_duration(self.refresh_expires_in)

    @property
    def token_issuer(self) -> str:
        return self.issuer or self.service_name

    @property
    def effective_refresh_cookie_options(self) -> CookieOptions:
        if self.refresh_cookie_options is not None:
            return self.refresh_cookie_options
        return self.cookie_options.model_copy(update={"max_age": self.refresh_ttl})


def load_settings(**overrides) -> Settings:
    """Build and validate a Settings value, converting schema errors to ConfigError.

    Callers at the composition root use this (or get_settings()) once at
    startup; everything downstream receives the resulting object.
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid AuthKit configuration: {exc}") from exc


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings used by the ASGI composition root.

    Only api/main.py calls this. In tests: call get_settings.cache_clear()
    between test cases if you need to inject different environment variables.
    """
    return load_settings()
