"""
Application configuration models and helpers.

Centralizes settings management so the HTTP layer, the protocol services, and
the operational scripts share one consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
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
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class GoogleSettings(BaseSettings):
    """Credentials for the federated identity provider (Google)."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    client_id: str = Field(..., validation_alias="GOOGLE_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="GOOGLE_REDIRECT_URI")


class OAuthSettings(BaseSettings):
    """Issuer identity and credential lifetimes."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    issuer: str = Field("http://localhost:8000", validation_alias="ISSUER")
    code_ttl_seconds: int = Field(300, validation_alias="CODE_TTL_SECONDS", gt=0)
    token_ttl_seconds: int = Field(3600, validation_alias="TOKEN_TTL_SECONDS", gt=0)
    refresh_ttl_seconds: int = Field(
        60 * 60 * 24 * 30, validation_alias="REFRESH_TTL_SECONDS", gt=0
    )
    session_ttl_seconds: int = Field(
        86400, validation_alias="SESSION_TTL_SECONDS", gt=0
    )
    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL", gt=0)
    clients_file: Optional[str] = Field(
        None,
        validation_alias="CLIENTS_FILE",
        description="JSON file with client registrations; built-ins are used when unset.",
    )

    @field_validator("issuer")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class SessionCookieSettings(BaseSettings):
    """Attributes of the browser session cookie."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field("sid", validation_alias="SESSION_COOKIE_NAME")
    domain: Optional[str] = Field(None, validation_alias="SESSION_COOKIE_DOMAIN")
    samesite: Literal["lax", "strict", "none"] = Field(
        "lax", validation_alias="SESSION_COOKIE_SAMESITE"
    )
    secure: bool = Field(True, validation_alias="SESSION_COOKIE_SECURE")


class StoreSettings(BaseSettings):
    """Where sessions, codes, tokens, and signing keys are persisted."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    backend: Literal["sqlite", "dynamodb"] = Field(
        "sqlite", validation_alias="CREDENTIAL_STORE_BACKEND"
    )
    sqlite_path: str = Field(
        "data/credentials.db", validation_alias="CREDENTIAL_STORE_PATH"
    )
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    dynamodb_table_name: Optional[str] = Field(
        None, validation_alias="DYNAMODB_TABLE_NAME"
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    state_signing_secret: Optional[str] = Field(
        None,
        validation_alias="STATE_SIGNING_SECRET",
        description="HMAC secret for the federated state parameter.",
    )
    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored Google tokens."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the authorization server."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    cookie: SessionCookieSettings = Field(default_factory=SessionCookieSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GoogleSettings",
    "OAuthSettings",
    "SecuritySettings",
    "SessionCookieSettings",
    "StoreSettings",
    "get_settings",
]
