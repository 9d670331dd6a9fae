"""Schemas for the authorization, token, and session endpoints."""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, TypeAdapter, field_validator


def _require_absolute_url(value: str) -> str:
    try:
        parts = urlsplit(value)
        parts.port  # raises ValueError for a malformed port
    except ValueError as exc:
        raise ValueError("redirect_uri must be a valid URL") from exc
    if not parts.scheme or not parts.hostname:
        raise ValueError("redirect_uri must be an absolute URL")
    return value


class AuthorizeQuery(BaseModel):
    """Query parameters accepted by ``GET /authorize``."""

    response_type: Literal["code"]
    client_id: str = Field(..., min_length=1)
    redirect_uri: str
    scope: str = Field(..., min_length=1)
    state: Optional[str] = None
    code_challenge: str = Field(..., min_length=1)
    code_challenge_method: Literal["S256"]

    @field_validator("redirect_uri")
    @classmethod
    def _absolute_redirect(cls, value: str) -> str:
        return _require_absolute_url(value)


class AuthorizationCodeGrant(BaseModel):
    grant_type: Literal["authorization_code"]
    code: str = Field(..., min_length=1)
    redirect_uri: str
    client_id: Optional[str] = None
    code_verifier: str = Field(..., min_length=1)

    @field_validator("redirect_uri")
    @classmethod
    def _absolute_redirect(cls, value: str) -> str:
        return _require_absolute_url(value)


class RefreshTokenGrant(BaseModel):
    grant_type: Literal["refresh_token"]
    refresh_token: str = Field(..., min_length=1)
    client_id: Optional[str] = None


TokenRequest = Annotated[
    Union[AuthorizationCodeGrant, RefreshTokenGrant],
    Field(discriminator="grant_type"),
]
TokenRequestAdapter: TypeAdapter[TokenRequest] = TypeAdapter(TokenRequest)

SUPPORTED_GRANT_TYPES = ("authorization_code", "refresh_token")


class TokenResponse(BaseModel):
    token_type: Literal["Bearer"] = "Bearer"
    access_token: str
    refresh_token: Optional[str] = None
    id_token: str
    expires_in: int
    google_access_token: Optional[str] = None
    google_refresh_token: Optional[str] = None
    google_token_expiry: Optional[int] = None


class SessionUser(BaseModel):
    id: str
    email: str
    name: str
    picture: Optional[str] = None


class SessionStatus(BaseModel):
    valid: bool
    user: Optional[SessionUser] = None


__all__ = [
    "AuthorizationCodeGrant",
    "AuthorizeQuery",
    "RefreshTokenGrant",
    "SUPPORTED_GRANT_TYPES",
    "SessionStatus",
    "SessionUser",
    "TokenRequest",
    "TokenRequestAdapter",
    "TokenResponse",
]
