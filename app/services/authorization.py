"""
Authorization code flow: ``/authorize`` and the Google callback.

A request either continues an existing session whose consented scope matches
the requested scope (and gets a code straight away) or is sent to Google with
a signed state that carries the original request through the round trip.
"""

from __future__ import annotations

import logging
import secrets
import time
from http import HTTPStatus
from typing import Any, Callable, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import ValidationError

from app.clients.google_auth import (
    GoogleOAuthClient,
    GoogleUserInfoError,
    OAuthStateEncoder,
    OAuthTokenExchangeError,
    StateDecodeError,
)
from app.core.errors import OAuthError
from app.models.oauth import (
    AUTHORIZATION_CODES,
    AuthorizationCode,
    FederatedTokens,
    Session,
    StateParameter,
    UserProfile,
)
from app.schemas.auth import AuthorizeQuery
from app.services.client_registry import ClientRegistry
from app.services.records import RecordRepository
from app.services.sessions import SessionManager

logger = logging.getLogger(__name__)


def scopes_match(granted: str, requested: str) -> bool:
    """Order-independent comparison of space-delimited scope strings."""
    return frozenset(granted.split()) == frozenset(requested.split())


def append_query(url: str, params: Mapping[str, Optional[str]]) -> str:
    """Set query parameters on ``url``, replacing any with the same name."""
    parts = urlsplit(url)
    updates = {name: value for name, value in params.items() if value is not None}
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in updates]
    query.extend(updates.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


class AuthorizationEngine:
    """Drives ``/authorize`` and ``/callback/google``."""

    def __init__(
        self,
        *,
        registry: ClientRegistry,
        sessions: SessionManager,
        records: RecordRepository,
        google_client: GoogleOAuthClient,
        state_encoder: OAuthStateEncoder,
        code_ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._sessions = sessions
        self._records = records
        self._google = google_client
        self._state_encoder = state_encoder
        self._code_ttl = code_ttl_seconds
        self._clock = clock

    def parse_request(self, params: Mapping[str, Any]) -> AuthorizeQuery:
        try:
            return AuthorizeQuery.model_validate(dict(params))
        except ValidationError as exc:
            raise OAuthError("invalid_request") from exc

    def authorize(self, params: Mapping[str, Any], session: Optional[Session]) -> str:
        """Return the URL the browser should be redirected to."""
        query = self.parse_request(params)
        if self._registry.validate(query.client_id, query.redirect_uri) is None:
            raise OAuthError("unauthorized_client")

        pending = StateParameter(
            client_id=query.client_id,
            redirect_uri=query.redirect_uri,
            state=query.state,
            code_challenge=query.code_challenge,
            scope=query.scope,
        )
        if session is None or not scopes_match(session.scope, query.scope):
            return self._federate(pending)

        return self.issue_code(session, pending, federated=session.federated)

    def _federate(self, pending: StateParameter) -> str:
        state = self._state_encoder.encode(pending.model_dump(exclude_none=True))
        return self._google.build_authorization_url(
            state=state, scopes=pending.scope.split()
        )

    def decode_state(self, state: str) -> StateParameter:
        try:
            return StateParameter.model_validate(self._state_encoder.decode(state))
        except (StateDecodeError, ValidationError) as exc:
            logger.warning("Rejected callback state: %s", exc)
            raise OAuthError("invalid_state") from exc

    async def complete_federation(
        self,
        *,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
    ) -> Tuple[str, str]:
        """Finish the Google round trip.

        Returns ``(session_id, redirect_url)``; the caller sets the cookie.
        """
        if error:
            raise OAuthError("google_oauth_error", error)
        if not code or not state:
            raise OAuthError("invalid_request")

        pending = self.decode_state(state)
        if self._registry.validate(pending.client_id, pending.redirect_uri) is None:
            raise OAuthError("unauthorized_client")

        try:
            tokens = await self._google.exchange_authorization_code(code)
        except OAuthTokenExchangeError as exc:
            logger.error("Google code exchange failed: %s", exc)
            raise OAuthError(
                "google_token_exchange_failed",
                status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            ) from exc

        try:
            profile = await self._google.fetch_profile(tokens.access_token)
        except GoogleUserInfoError as exc:
            logger.error("Google profile fetch failed: %s", exc)
            raise OAuthError(
                "google_userinfo_failed",
                status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            ) from exc

        user = UserProfile(
            user_id=f"google_{profile.id}",
            email=profile.email,
            name=profile.name,
            picture=profile.picture,
        )
        federated = FederatedTokens(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expiry=int((self._clock() + tokens.expires_in) * 1000),
        )
        session_id = self._sessions.create(user, pending.scope, federated)
        return session_id, self.issue_code(user, pending, federated=federated)

    def issue_code(
        self,
        user: UserProfile,
        pending: StateParameter,
        *,
        federated: Optional[FederatedTokens] = None,
    ) -> str:
        """Persist a single-use code and return the client redirect URL."""
        code = secrets.token_urlsafe(32)
        record = AuthorizationCode(
            user_id=user.user_id,
            email=user.email,
            name=user.name,
            picture=user.picture,
            client_id=pending.client_id,
            redirect_uri=pending.redirect_uri,
            code_challenge=pending.code_challenge,
            scope=pending.scope,
            created_at=int(self._clock()),
            federated=federated,
        )
        self._records.save(
            AUTHORIZATION_CODES, code, record, ttl_seconds=self._code_ttl
        )
        logger.info("Issued authorization code for client %s", pending.client_id)
        return append_query(pending.redirect_uri, {"code": code, "state": pending.state})


__all__ = ["AuthorizationEngine", "append_query", "scopes_match"]
