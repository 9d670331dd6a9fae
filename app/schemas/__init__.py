"""Public schema exports."""

from .auth import (
    AuthorizationCodeGrant,
    AuthorizeQuery,
    RefreshTokenGrant,
    SessionStatus,
    SessionUser,
    TokenRequest,
    TokenResponse,
)

__all__ = [
    "AuthorizationCodeGrant",
    "AuthorizeQuery",
    "RefreshTokenGrant",
    "SessionStatus",
    "SessionUser",
    "TokenRequest",
    "TokenResponse",
]
