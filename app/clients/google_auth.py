"""
Google OAuth utilities.

These helpers drive the federated half of the login: building the consent URL,
exchanging Google's authorization code, reading the user's profile, and
refreshing Google access tokens on behalf of downstream clients.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import time
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Callable, Dict, Iterable, Optional, Tuple
from urllib.parse import urlencode

import httpx
from fastapi import status

from app.core.config import GoogleSettings

_SIGNATURE_BYTES = 32


class StateDecodeError(Exception):
    """Raised when a state value is malformed, forged, or expired."""


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(
        self,
        secret_key: str,
        *,
        ttl_seconds: int = 900,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret_key = secret_key.encode("utf-8")
        self._ttl = ttl_seconds
        self._clock = clock

    def encode(self, payload: Dict[str, Any]) -> str:
        stamped = {**payload, "issued_at": int(self._clock())}
        serialized = json.dumps(stamped, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise StateDecodeError("State is not valid base64.") from exc
        if len(decoded) <= _SIGNATURE_BYTES:
            raise StateDecodeError("State is truncated.")

        signature, serialized = decoded[:_SIGNATURE_BYTES], decoded[_SIGNATURE_BYTES:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise StateDecodeError("Invalid OAuth state signature.")

        try:
            payload = json.loads(serialized)
        except ValueError as exc:
            raise StateDecodeError("State payload is not JSON.") from exc
        if not isinstance(payload, dict):
            raise StateDecodeError("State payload is not an object.")

        issued_at = payload.pop("issued_at", None)
        if not isinstance(issued_at, int):
            raise StateDecodeError("Missing issued_at in state.")
        if self._clock() - issued_at > self._ttl:
            raise StateDecodeError("OAuth state has expired.")
        return payload


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error."""


class GoogleUserInfoError(Exception):
    """Raised when the Google profile cannot be fetched."""


@dataclass(frozen=True)
class GoogleTokens:
    access_token: str
    refresh_token: Optional[str]
    expires_in: int


@dataclass(frozen=True)
class GoogleProfile:
    id: str
    email: str
    name: str
    picture: Optional[str] = None


class GoogleOAuthClient:
    """Build Google authorization URLs, exchange codes, and fetch profiles."""

    AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    def __init__(self, google_settings: GoogleSettings, *, timeout: float = 10.0) -> None:
        self._google = google_settings
        self._timeout = timeout

    def build_authorization_url(
        self, state: str, scopes: Iterable[str], access_type: str = "offline"
    ) -> str:
        """Construct the Google OAuth consent URL."""
        params = {
            "client_id": self._google.client_id,
            "redirect_uri": str(self._google.redirect_uri),
            "response_type": "code",
            "scope": " ".join(scopes),
            "access_type": access_type,
            "include_granted_scopes": "true",
            "prompt": "consent",
            "state": state,
        }
        query = urlencode(params)
        return f"{self.AUTH_BASE_URL}?{query}"

    async def _post_token_endpoint(self, payload: Dict[str, str]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self.TOKEN_URL, data=payload)
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(f"Google token endpoint unreachable: {exc}") from exc

        if response.status_code != status.HTTP_200_OK:
            raise OAuthTokenExchangeError(response.text)
        try:
            token_payload = response.json()
        except ValueError as exc:
            raise OAuthTokenExchangeError("Google token endpoint returned non-JSON.") from exc
        if not isinstance(token_payload, dict):
            raise OAuthTokenExchangeError("Google token endpoint returned an unexpected payload.")
        return token_payload

    async def exchange_authorization_code(self, code: str) -> GoogleTokens:
        """Exchange a Google authorization code for Google tokens."""
        token_payload = await self._post_token_endpoint(
            {
                "code": code,
                "client_id": self._google.client_id,
                "client_secret": self._google.client_secret,
                "redirect_uri": str(self._google.redirect_uri),
                "grant_type": "authorization_code",
            }
        )
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")

        if not access_token or not expires_in:
            raise OAuthTokenExchangeError("Incomplete token payload returned from Google.")

        return GoogleTokens(
            access_token=access_token,
            refresh_token=token_payload.get("refresh_token"),
            expires_in=int(expires_in),
        )

    async def fetch_profile(self, access_token: str) -> GoogleProfile:
        """Read the signed-in user's Google profile."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(
                    self.USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise GoogleUserInfoError(f"Google userinfo unreachable: {exc}") from exc

        if response.status_code != status.HTTP_200_OK:
            raise GoogleUserInfoError(response.text)

        try:
            payload = response.json()
        except ValueError as exc:
            raise GoogleUserInfoError("Google userinfo returned non-JSON.") from exc
        if not isinstance(payload, dict):
            raise GoogleUserInfoError("Google userinfo returned an unexpected payload.")
        user_id = payload.get("id")
        email = payload.get("email")
        if not user_id or not email:
            raise GoogleUserInfoError("Google profile is missing id or email.")

        return GoogleProfile(
            id=str(user_id),
            email=email,
            name=payload.get("name") or email,
            picture=payload.get("picture"),
        )

    async def refresh_token(self, refresh_token: str) -> Tuple[str, int]:
        """Refresh the access token using a stored refresh token."""
        token_payload = await self._post_token_endpoint(
            {
                "client_id": self._google.client_id,
                "client_secret": self._google.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        )
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in", 3600)

        if not access_token:
            raise OAuthTokenExchangeError("Incomplete refresh payload returned from Google.")

        return access_token, int(expires_in)


__all__ = [
    "GoogleOAuthClient",
    "GoogleProfile",
    "GoogleTokens",
    "GoogleUserInfoError",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
    "StateDecodeError",
]
