"""
Domain models for records persisted in the credential store.

Each record is validated when it is read back, so a blob that drifted from
these shapes is rejected instead of trusted.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

SESSIONS = "sessions"
AUTHORIZATION_CODES = "codes"
ACCESS_TOKENS = "access_tokens"
REFRESH_TOKENS = "refresh_tokens"
SIGNING_KEYS = "keys"


class FederatedTokens(BaseModel):
    """Google tokens carried alongside our own credentials."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expiry: Optional[int] = Field(
        None, description="Google access token expiry, epoch milliseconds."
    )


class UserProfile(BaseModel):
    """Snapshot of the user copied into every credential."""

    user_id: str
    email: str
    name: str
    picture: Optional[str] = None


class Session(UserProfile):
    """Browser session established after a successful federated login."""

    scope: str
    federated: Optional[FederatedTokens] = None
    created_at: int


class StateParameter(BaseModel):
    """Authorization request parameters carried through the Google redirect."""

    client_id: str
    redirect_uri: str
    state: Optional[str] = None
    code_challenge: str
    scope: str


class AuthorizationCode(UserProfile):
    client_id: str
    redirect_uri: str
    code_challenge: str
    scope: str
    created_at: int
    federated: Optional[FederatedTokens] = None


class AccessTokenRecord(UserProfile):
    scope: str
    exp: int
    federated: Optional[FederatedTokens] = None


class RefreshTokenRecord(UserProfile):
    client_id: str
    scope: str
    federated: Optional[FederatedTokens] = None


class PublicJwk(BaseModel):
    model_config = ConfigDict(extra="allow")

    kty: str
    n: str
    e: str
    kid: str


class PrivateJwk(PublicJwk):
    d: str
    p: str
    q: str
    dp: str
    dq: str
    qi: str


class SigningKeyPair(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kid: str
    public_jwk: PublicJwk = Field(..., alias="publicJwk")
    private_jwk: PrivateJwk = Field(..., alias="privateJwk")


__all__ = [
    "ACCESS_TOKENS",
    "AUTHORIZATION_CODES",
    "AccessTokenRecord",
    "AuthorizationCode",
    "FederatedTokens",
    "PrivateJwk",
    "PublicJwk",
    "REFRESH_TOKENS",
    "RefreshTokenRecord",
    "SESSIONS",
    "SIGNING_KEYS",
    "Session",
    "SigningKeyPair",
    "StateParameter",
    "UserProfile",
]
