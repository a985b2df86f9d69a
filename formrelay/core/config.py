"""
Application configuration models and helpers.

Settings are grouped by concern (Airtable client credentials, OAuth flow,
browser sessions, token encryption) and exposed through a single cached
``AppSettings`` object shared by the routes and the dependency factories.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        os.environ[key] = value.strip().strip('"').strip("'")


_load_env_file()


class AirtableSettings(BaseSettings):
    """Client registration and endpoints for the Airtable platform.

    Client credentials are optional here so that a missing registration
    surfaces as a configuration error on the authorization request rather
    than preventing the application from starting.
    """

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    client_id: Optional[str] = Field(None, validation_alias="AIRTABLE_CLIENT_ID")
    client_secret: Optional[str] = Field(
        None, validation_alias="AIRTABLE_CLIENT_SECRET"
    )
    redirect_uri: str = Field(
        "http://localhost:5001/api/auth/airtable/callback",
        validation_alias="AIRTABLE_REDIRECT_URI",
    )
    authorize_url: str = Field(
        "https://airtable.com/oauth2/v1/authorize",
        validation_alias="AIRTABLE_AUTHORIZE_URL",
    )
    token_url: str = Field(
        "https://airtable.com/oauth2/v1/token",
        validation_alias="AIRTABLE_TOKEN_URL",
    )
    api_base_url: str = Field(
        "https://api.airtable.com/v0",
        validation_alias="AIRTABLE_API_BASE_URL",
        description="Root of the REST API used for whoami and record writes.",
    )
    request_timeout_seconds: float = Field(
        10.0, validation_alias="AIRTABLE_TIMEOUT_SECONDS"
    )


class OAuthSettings(BaseSettings):
    """OAuth handshake configuration."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    scopes: str = Field(
        "data.records:read data.records:write schema.bases:read",
        validation_alias="OAUTH_SCOPES",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _normalize_scopes(cls, value: str | list[str] | tuple[str, ...]) -> str:
        """Accept scopes as a list, or as a comma or space separated string."""
        if isinstance(value, (list, tuple)):
            parts = [str(scope).strip() for scope in value]
        else:
            parts = str(value).replace(",", " ").split()
        return " ".join(scope for scope in parts if scope)


class SessionSettings(BaseSettings):
    """Browser session cookie configuration."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    secret: str = Field(
        ...,
        validation_alias="SESSION_SECRET",
        description="Key used to sign the session cookie.",
    )
    cookie_name: str = Field("formrelay.sid", validation_alias="SESSION_COOKIE_NAME")
    max_age_seconds: int = Field(
        24 * 60 * 60,
        validation_alias="SESSION_MAX_AGE",
        description="Sessions older than this are no longer honored.",
    )
    same_site: str = Field("lax", validation_alias="SESSION_COOKIE_SAMESITE")
    secure: bool = Field(False, validation_alias="SESSION_COOKIE_SECURE")
    cookie_domain: Optional[str] = Field(None, validation_alias="SESSION_COOKIE_DOMAIN")

    @field_validator("same_site")
    @classmethod
    def _check_same_site(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"lax", "strict", "none"}:
            raise ValueError("SESSION_COOKIE_SAMESITE must be lax, strict or none")
        return normalized


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: str = Field(
        "http://localhost:5173",
        validation_alias="FRONTEND_URL",
        description="Browser destination for login results and the dashboard.",
    )
    cors_origins: str = Field(
        "http://localhost:5173",
        validation_alias="CORS_ORIGINS",
        description="Comma-separated origins allowed to make credentialed calls.",
    )
    database_path: str = Field(
        "data/formrelay.db", validation_alias="FORMRELAY_DB_PATH"
    )
    airtable: AirtableSettings = Field(default_factory=AirtableSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def cookie_secure(self) -> bool:
        """Session cookies are always Secure in production."""
        return self.session.secure or self.environment.lower() == "production"

    def frontend_url(self, path: str) -> str:
        """Join a path onto the configured front-end base URL."""
        return f"{self.frontend_base_url.rstrip('/')}/{path.lstrip('/')}"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AirtableSettings",
    "AppSettings",
    "OAuthSettings",
    "SecuritySettings",
    "SessionSettings",
    "get_settings",
]
