"""Pytest configuration shared across the suite."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import re
import time
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx
import pytest

from app.clients.google_auth import (
    GoogleProfile,
    GoogleTokens,
    GoogleUserInfoError,
    OAuthStateEncoder,
    OAuthTokenExchangeError,
)
from app.clients.sqlite_store import SQLiteCredentialStore
from app.core.config import OAuthSettings, SessionCookieSettings
from app.services import (
    DEFAULT_CLIENTS,
    AuthorizationEngine,
    ClientRegistry,
    RecordRepository,
    SessionManager,
    SigningKeyManager,
    SsoSessionCheck,
    TokenCipherService,
    TokenService,
    UserInfoResolver,
)

ISSUER = "https://auth.example.com"


@pytest.fixture()
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


class FakeClock:
    def __init__(self, start: float | None = None) -> None:
        self.now = time.time() if start is None else start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGoogleClient:
    """Stands in for Google's OAuth endpoints."""

    def __init__(self) -> None:
        self.states: list[str] = []
        self.scopes: list[list[str]] = []
        self.codes: list[str] = []
        self.refreshed: list[str] = []
        self.fail_exchange = False
        self.fail_profile = False
        self.fail_refresh = False
        self.refresh_token_value: str | None = "google-refresh"
        self.profile = GoogleProfile(
            id="1234",
            email="peter@uci.edu",
            name="Peter Anteater",
            picture="https://example.com/peter.png",
        )

    def build_authorization_url(self, state, scopes, access_type="offline") -> str:
        self.states.append(state)
        self.scopes.append(list(scopes))
        query = urlencode(
            {
                "state": state,
                "scope": " ".join(scopes),
                "access_type": access_type,
                "prompt": "consent",
            }
        )
        return f"https://accounts.example.com/o/oauth2/v2/auth?{query}"

    async def exchange_authorization_code(self, code: str) -> GoogleTokens:
        self.codes.append(code)
        if self.fail_exchange:
            raise OAuthTokenExchangeError("invalid_grant")
        return GoogleTokens(
            access_token="google-access",
            refresh_token=self.refresh_token_value,
            expires_in=3599,
        )

    async def fetch_profile(self, access_token: str) -> GoogleProfile:
        if self.fail_profile:
            raise GoogleUserInfoError("boom")
        return self.profile

    async def refresh_token(self, refresh_token: str) -> tuple[str, int]:
        self.refreshed.append(refresh_token)
        if self.fail_refresh:
            raise OAuthTokenExchangeError("invalid_grant")
        return "google-access-refreshed", 3600


@dataclass
class Services:
    clock: FakeClock
    store: SQLiteCredentialStore
    records: RecordRepository
    registry: ClientRegistry
    google: FakeGoogleClient
    state_encoder: OAuthStateEncoder
    oauth: OAuthSettings
    signing_keys: SigningKeyManager
    sessions: SessionManager
    engine: AuthorizationEngine
    tokens: TokenService
    userinfo: UserInfoResolver
    session_check: SsoSessionCheck


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def services(tmp_path, clock) -> Services:
    oauth = OAuthSettings(ISSUER=ISSUER)
    store = SQLiteCredentialStore(str(tmp_path / "credentials.db"), clock=clock)
    records = RecordRepository(store, TokenCipherService(secret="test-secret"))
    registry = ClientRegistry.from_records(
        [
            *DEFAULT_CLIENTS,
            {
                "client_id": "confidential",
                "client_secret": "s3cret",
                "redirect_uri": "https://app.example.org/callback",
                "token_endpoint_auth_method": "client_secret_basic",
                "name": "Confidential App",
            },
        ]
    )
    google = FakeGoogleClient()
    state_encoder = OAuthStateEncoder(
        "state-secret", ttl_seconds=oauth.state_ttl_seconds, clock=clock
    )
    signing_keys = SigningKeyManager(
        records, rotation_grace_seconds=oauth.token_ttl_seconds
    )
    sessions = SessionManager(
        records,
        SessionCookieSettings(),
        ttl_seconds=oauth.session_ttl_seconds,
        clock=clock,
    )
    engine = AuthorizationEngine(
        registry=registry,
        sessions=sessions,
        records=records,
        google_client=google,
        state_encoder=state_encoder,
        code_ttl_seconds=oauth.code_ttl_seconds,
        clock=clock,
    )
    tokens = TokenService(
        registry=registry,
        records=records,
        signing_keys=signing_keys,
        google_client=google,
        issuer=oauth.issuer,
        token_ttl_seconds=oauth.token_ttl_seconds,
        refresh_ttl_seconds=oauth.refresh_ttl_seconds,
        clock=clock,
    )
    return Services(
        clock=clock,
        store=store,
        records=records,
        registry=registry,
        google=google,
        state_encoder=state_encoder,
        oauth=oauth,
        signing_keys=signing_keys,
        sessions=sessions,
        engine=engine,
        tokens=tokens,
        userinfo=UserInfoResolver(records, clock=clock),
        session_check=SsoSessionCheck(registry),
    )


@pytest.fixture()
def oauth_overrides(services):
    """Swap every protocol service on the app for the test instances."""
    from app import dependencies
    from app.main import app

    services.signing_keys.ensure_key_pair()
    overrides = {
        dependencies.get_client_registry: lambda: services.registry,
        dependencies.get_session_manager: lambda: services.sessions,
        dependencies.get_signing_key_manager: lambda: services.signing_keys,
        dependencies.get_authorization_engine: lambda: services.engine,
        dependencies.get_token_service: lambda: services.tokens,
        dependencies.get_userinfo_resolver: lambda: services.userinfo,
        dependencies.get_session_check: lambda: services.session_check,
        dependencies.get_oauth_settings: lambda: services.oauth,
    }
    app.dependency_overrides.update(overrides)
    yield services
    app.dependency_overrides.clear()


def session_cookie(response: httpx.Response, name: str = "sid") -> str | None:
    """Read the session id out of a Set-Cookie header."""
    for header in response.headers.get_list("set-cookie"):
        match = re.match(rf"{name}=([^;]*)", header)
        if match:
            return match.group(1)
    return None


@pytest.fixture()
def read_session_cookie():
    return session_cookie
