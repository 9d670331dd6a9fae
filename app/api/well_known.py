"""
Well-known endpoints: OpenID Connect discovery and JWKS.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.config import OAuthSettings
from app.dependencies import get_oauth_settings, get_signing_key_manager

router = APIRouter()

_NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def discovery_document(issuer: str) -> dict:
    return {
        "issuer": issuer,
        "authorization_endpoint": f"{issuer}/authorize",
        "token_endpoint": f"{issuer}/token",
        "userinfo_endpoint": f"{issuer}/userinfo",
        "jwks_uri": f"{issuer}/jwks.json",
        "end_session_endpoint": f"{issuer}/logout",
        "scopes_supported": ["openid", "profile", "email"],
        "response_types_supported": ["code"],
        "grant_types_supported": ["authorization_code", "refresh_token"],
        "subject_types_supported": ["public"],
        "id_token_signing_alg_values_supported": ["RS256"],
        "token_endpoint_auth_methods_supported": ["none", "client_secret_basic"],
        "code_challenge_methods_supported": ["S256"],
        "claims_supported": [
            "sub",
            "iss",
            "aud",
            "exp",
            "iat",
            "name",
            "email",
            "picture",
        ],
    }


@router.get("/.well-known/openid-configuration")
async def openid_configuration(
    oauth: Annotated[OAuthSettings, Depends(get_oauth_settings)],
) -> JSONResponse:
    """OpenID Connect discovery document."""
    return JSONResponse(content=discovery_document(oauth.issuer), headers=_NO_STORE)


@router.get("/jwks.json")
async def jwks(
    signing_keys: Annotated[Any, Depends(get_signing_key_manager)],
) -> JSONResponse:
    """JSON Web Key Set for ID token signature verification."""
    return JSONResponse(content=signing_keys.get_public_jwks(), headers=_NO_STORE)


__all__ = ["discovery_document", "router"]
