"""
Token endpoint: authorization code and refresh token grants.

Both grants mint an opaque access token plus an RS256 ID token. The code grant
also mints a refresh token; refresh tokens are not rotated.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import secrets
import time
from http import HTTPStatus
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

from app.clients.google_auth import GoogleOAuthClient, OAuthTokenExchangeError
from app.core.errors import MalformedRecordError, OAuthError, SigningKeyUnavailableError
from app.models.oauth import (
    ACCESS_TOKENS,
    AUTHORIZATION_CODES,
    REFRESH_TOKENS,
    AccessTokenRecord,
    AuthorizationCode,
    FederatedTokens,
    RefreshTokenRecord,
    SigningKeyPair,
    UserProfile,
)
from app.schemas.auth import (
    SUPPORTED_GRANT_TYPES,
    AuthorizationCodeGrant,
    RefreshTokenGrant,
    TokenRequest,
    TokenRequestAdapter,
    TokenResponse,
)
from app.services.client_registry import Client, ClientRegistry
from app.services.records import RecordRepository
from app.services.signing_keys import SigningKeyManager

logger = logging.getLogger(__name__)


def pkce_challenge(code_verifier: str) -> str:
    """S256 transform: base64url(SHA-256(verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii", errors="strict")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def verify_pkce(code_verifier: str, code_challenge: str) -> bool:
    try:
        computed = pkce_challenge(code_verifier)
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(computed.encode("ascii"), code_challenge.encode("utf-8"))


class TokenService:
    """Exchanges codes and refresh tokens for token sets."""

    def __init__(
        self,
        *,
        registry: ClientRegistry,
        records: RecordRepository,
        signing_keys: SigningKeyManager,
        google_client: GoogleOAuthClient,
        issuer: str,
        token_ttl_seconds: int,
        refresh_ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._records = records
        self._keys = signing_keys
        self._google = google_client
        self._issuer = issuer
        self._token_ttl = token_ttl_seconds
        self._refresh_ttl = refresh_ttl_seconds
        self._clock = clock

    def parse_request(self, form: Mapping[str, Any]) -> TokenRequest:
        grant_type = form.get("grant_type")
        if grant_type and grant_type not in SUPPORTED_GRANT_TYPES:
            raise OAuthError("unsupported_grant_type")
        try:
            return TokenRequestAdapter.validate_python(dict(form))
        except ValidationError as exc:
            raise OAuthError("invalid_request") from exc

    async def exchange(
        self, form: Mapping[str, Any], *, authorization: Optional[str] = None
    ) -> TokenResponse:
        request = self.parse_request(form)
        if isinstance(request, AuthorizationCodeGrant):
            return self._exchange_code(request, authorization)
        if isinstance(request, RefreshTokenGrant):
            return await self._refresh(request, authorization)
        raise OAuthError("unsupported_grant_type")  # pragma: no cover

    def _authenticate_client(self, client_id: str, authorization: Optional[str]) -> None:
        """Enforce HTTP Basic credentials for confidential clients."""
        client: Optional[Client] = self._registry.get(client_id)
        if client is None or client.is_public:
            return

        challenge = {"WWW-Authenticate": 'Basic realm="token"'}
        scheme, _, encoded = (authorization or "").partition(" ")
        if scheme.lower() != "basic" or not encoded:
            raise OAuthError(
                "invalid_client", status_code=HTTPStatus.UNAUTHORIZED, headers=challenge
            )
        try:
            presented_id, _, presented_secret = (
                base64.b64decode(encoded, validate=True).decode("utf-8").partition(":")
            )
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise OAuthError(
                "invalid_client", status_code=HTTPStatus.UNAUTHORIZED, headers=challenge
            ) from exc

        secret_ok = client.client_secret is not None and hmac.compare_digest(
            presented_secret.encode("utf-8"), client.client_secret.encode("utf-8")
        )
        if presented_id != client.client_id or not secret_ok:
            raise OAuthError(
                "invalid_client", status_code=HTTPStatus.UNAUTHORIZED, headers=challenge
            )

    def _exchange_code(
        self, request: AuthorizationCodeGrant, authorization: Optional[str]
    ) -> TokenResponse:
        try:
            code = self._records.load(AUTHORIZATION_CODES, request.code, AuthorizationCode)
        except MalformedRecordError:
            code = None
        if code is None:
            raise OAuthError("invalid_authorization_code")

        if request.client_id and request.client_id != code.client_id:
            raise OAuthError("invalid_authorization_code_client_id")
        if request.redirect_uri != code.redirect_uri:
            raise OAuthError("invalid_authorization_code_redirect_uri")
        self._authenticate_client(code.client_id, authorization)
        if not verify_pkce(request.code_verifier, code.code_challenge):
            raise OAuthError("invalid_grant")

        # Only the request whose delete removed the record may mint tokens.
        if not self._records.delete(AUTHORIZATION_CODES, request.code):
            raise OAuthError("invalid_authorization_code")

        key_pair = self._current_key_pair()
        now = int(self._clock())
        access_token = secrets.token_urlsafe(32)
        refresh_token = secrets.token_urlsafe(32)
        id_token = self._keys.sign(
            self._id_token_claims(code, audience=code.client_id, now=now), key_pair
        )

        self._records.save(
            ACCESS_TOKENS,
            access_token,
            AccessTokenRecord(
                **_profile_fields(code),
                scope=code.scope,
                exp=now + self._token_ttl,
                federated=code.federated,
            ),
            ttl_seconds=self._token_ttl,
        )
        self._records.save(
            REFRESH_TOKENS,
            refresh_token,
            RefreshTokenRecord(
                **_profile_fields(code),
                client_id=code.client_id,
                scope=code.scope,
                federated=(
                    FederatedTokens(refresh_token=code.federated.refresh_token)
                    if code.federated and code.federated.refresh_token
                    else None
                ),
            ),
            ttl_seconds=self._refresh_ttl,
        )
        logger.info("Issued tokens for client %s via authorization_code", code.client_id)

        federated = code.federated or FederatedTokens()
        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            id_token=id_token,
            expires_in=self._token_ttl,
            google_access_token=federated.access_token,
            google_refresh_token=federated.refresh_token,
            google_token_expiry=federated.expiry,
        )

    async def _refresh(
        self, request: RefreshTokenGrant, authorization: Optional[str]
    ) -> TokenResponse:
        try:
            grant = self._records.load(
                REFRESH_TOKENS, request.refresh_token, RefreshTokenRecord
            )
        except MalformedRecordError:
            grant = None
        if grant is None:
            raise OAuthError("invalid_grant")
        if request.client_id and request.client_id != grant.client_id:
            raise OAuthError("invalid_grant")
        self._authenticate_client(grant.client_id, authorization)

        google_refresh_token = grant.federated.refresh_token if grant.federated else None
        federated = FederatedTokens(refresh_token=google_refresh_token)
        if google_refresh_token:
            federated = await self._refresh_google(google_refresh_token)

        key_pair = self._current_key_pair()
        now = int(self._clock())
        access_token = secrets.token_urlsafe(32)
        id_token = self._keys.sign(
            self._id_token_claims(grant, audience=grant.client_id, now=now), key_pair
        )
        self._records.save(
            ACCESS_TOKENS,
            access_token,
            AccessTokenRecord(
                **_profile_fields(grant),
                scope=grant.scope,
                exp=now + self._token_ttl,
                federated=federated if google_refresh_token else None,
            ),
            ttl_seconds=self._token_ttl,
        )
        logger.info("Issued tokens for client %s via refresh_token", grant.client_id)

        return TokenResponse(
            access_token=access_token,
            id_token=id_token,
            expires_in=self._token_ttl,
            google_access_token=federated.access_token,
            google_refresh_token=federated.refresh_token,
            google_token_expiry=federated.expiry,
        )

    async def _refresh_google(self, google_refresh_token: str) -> FederatedTokens:
        """Best effort: a Google failure leaves only the refresh token."""
        refreshed = FederatedTokens(refresh_token=google_refresh_token)
        try:
            access_token, expires_in = await self._google.refresh_token(
                google_refresh_token
            )
        except OAuthTokenExchangeError as exc:
            logger.warning("Google token refresh failed: %s", exc)
            return refreshed
        refreshed.access_token = access_token
        refreshed.expiry = int((self._clock() + expires_in) * 1000)
        return refreshed

    def _current_key_pair(self) -> SigningKeyPair:
        try:
            return self._keys.load_current()
        except SigningKeyUnavailableError as exc:
            logger.error("Cannot sign ID token: %s", exc)
            raise OAuthError(
                "server_error", status_code=HTTPStatus.INTERNAL_SERVER_ERROR
            ) from exc

    def _id_token_claims(
        self, user: UserProfile, *, audience: str, now: int
    ) -> Dict[str, Any]:
        claims: Dict[str, Any] = {
            "sub": user.user_id,
            "email": user.email,
            "name": user.name,
            "aud": audience,
            "iss": self._issuer,
            "iat": now,
            "exp": now + self._token_ttl,
        }
        if user.picture:
            claims["picture"] = user.picture
        return claims


def _profile_fields(user: UserProfile) -> Dict[str, Any]:
    return {
        "user_id": user.user_id,
        "email": user.email,
        "name": user.name,
        "picture": user.picture,
    }


__all__ = ["TokenService", "pkce_challenge", "verify_pkce"]
