try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import base64
from typing import Optional
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from app.main import app
from app.models.oauth import SIGNING_KEYS, FederatedTokens, StateParameter, UserProfile
from app.services.tokens import pkce_challenge, verify_pkce

VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
CHALLENGE = "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
REDIRECT_URI = "http://localhost:3000/auth"


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="https://testserver"
    )


def _issue_code(
    services,
    *,
    client_id: str = "test",
    redirect_uri: str = REDIRECT_URI,
    scope: str = "openid profile email",
    federated: Optional[FederatedTokens] = None,
) -> str:
    user = UserProfile(user_id="google_1", email="anteater@uci.edu", name="Anteater")
    pending = StateParameter(
        client_id=client_id,
        redirect_uri=redirect_uri,
        state="s",
        code_challenge=CHALLENGE,
        scope=scope,
    )
    url = services.engine.issue_code(user, pending, federated=federated)
    return parse_qs(urlsplit(url).query)["code"][0]


def _code_form(code_value: str, **overrides: str) -> dict:
    return {
        "grant_type": "authorization_code",
        "code": code_value,
        "redirect_uri": REDIRECT_URI,
        "client_id": "test",
        "code_verifier": VERIFIER,
        **overrides,
    }


def _basic(client_id: str, secret: str) -> dict:
    encoded = base64.b64encode(f"{client_id}:{secret}".encode()).decode()
    return {"Authorization": f"Basic {encoded}"}


def test_pkce_matches_rfc_example() -> None:
    assert pkce_challenge(VERIFIER) == CHALLENGE
    assert verify_pkce(VERIFIER, CHALLENGE)
    assert not verify_pkce("wrong-verifier", CHALLENGE)
    assert not verify_pkce("café", CHALLENGE)


@pytest.mark.anyio
async def test_code_is_single_use(oauth_overrides):
    code = _issue_code(oauth_overrides)

    async with _client() as client:
        first = await client.post("/token", data=_code_form(code))
        second = await client.post("/token", data=_code_form(code))

    assert first.status_code == 200
    assert "google_access_token" not in first.json()
    assert second.status_code == 400
    assert second.json()["error"] == "invalid_authorization_code"


@pytest.mark.anyio
async def test_json_body_is_accepted(oauth_overrides):
    code = _issue_code(oauth_overrides)

    async with _client() as client:
        response = await client.post("/token", json=_code_form(code))

    assert response.status_code == 200
    assert response.json()["token_type"] == "Bearer"


@pytest.mark.anyio
async def test_wrong_verifier_is_rejected(oauth_overrides):
    code = _issue_code(oauth_overrides)

    async with _client() as client:
        response = await client.post(
            "/token", data=_code_form(code, code_verifier="not-the-verifier")
        )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_grant"


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("overrides", "error"),
    [
        ({"client_id": "antalmanac"}, "invalid_authorization_code_client_id"),
        ({"redirect_uri": "http://localhost:3000/auth/other"}, "invalid_authorization_code_redirect_uri"),
        ({"code": "unknown-code"}, "invalid_authorization_code"),
    ],
)
async def test_code_binding_is_enforced(oauth_overrides, overrides, error):
    code = _issue_code(oauth_overrides)

    async with _client() as client:
        response = await client.post("/token", data=_code_form(code, **overrides))

    assert response.status_code == 400
    assert response.json()["error"] == error


@pytest.mark.anyio
async def test_expired_code_is_rejected(oauth_overrides):
    services = oauth_overrides
    code = _issue_code(services)
    services.clock.advance(services.oauth.code_ttl_seconds + 1)

    async with _client() as client:
        response = await client.post("/token", data=_code_form(code))

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_authorization_code"


@pytest.mark.anyio
async def test_unknown_grant_type_and_missing_fields(oauth_overrides):
    async with _client() as client:
        unsupported = await client.post("/token", data={"grant_type": "password"})
        missing = await client.post("/token", data={"grant_type": "authorization_code"})

    assert unsupported.status_code == 400
    assert unsupported.json()["error"] == "unsupported_grant_type"
    assert missing.status_code == 400
    assert missing.json()["error"] == "invalid_request"
    assert missing.headers["cache-control"] == "no-store"


@pytest.mark.anyio
async def test_missing_signing_key_is_a_server_error(oauth_overrides):
    services = oauth_overrides
    code = _issue_code(services)
    services.store.delete(SIGNING_KEYS, "current")

    async with _client() as client:
        response = await client.post("/token", data=_code_form(code))

    assert response.status_code == 500
    assert response.json()["error"] == "server_error"


@pytest.mark.anyio
async def test_refresh_grant_refreshes_google_token(oauth_overrides):
    services = oauth_overrides
    code = _issue_code(
        services,
        federated=FederatedTokens(
            access_token="google-access", refresh_token="google-refresh", expiry=1
        ),
    )

    async with _client() as client:
        issued = (await client.post("/token", data=_code_form(code))).json()
        refreshed = await client.post(
            "/token",
            data={
                "grant_type": "refresh_token",
                "refresh_token": issued["refresh_token"],
                "client_id": "test",
            },
        )
        userinfo = await client.get(
            "/userinfo",
            headers={"Authorization": f"Bearer {refreshed.json()['access_token']}"},
        )

    assert refreshed.status_code == 200
    body = refreshed.json()
    assert "refresh_token" not in body
    assert body["access_token"] != issued["access_token"]
    assert body["google_access_token"] == "google-access-refreshed"
    assert body["google_refresh_token"] == "google-refresh"
    assert body["google_token_expiry"] == int((services.clock.now + 3600) * 1000)
    assert services.google.refreshed == ["google-refresh"]
    assert userinfo.json()["sub"] == "google_1"


@pytest.mark.anyio
async def test_refresh_survives_google_failure(oauth_overrides):
    services = oauth_overrides
    code = _issue_code(
        services, federated=FederatedTokens(refresh_token="google-refresh")
    )
    services.google.fail_refresh = True

    async with _client() as client:
        issued = (await client.post("/token", data=_code_form(code))).json()
        refreshed = await client.post(
            "/token",
            data={"grant_type": "refresh_token", "refresh_token": issued["refresh_token"]},
        )

    assert refreshed.status_code == 200
    body = refreshed.json()
    assert body["id_token"]
    assert "google_access_token" not in body
    assert body["google_refresh_token"] == "google-refresh"


@pytest.mark.anyio
async def test_refresh_rejects_unknown_token_and_wrong_client(oauth_overrides):
    code = _issue_code(oauth_overrides)

    async with _client() as client:
        issued = (await client.post("/token", data=_code_form(code))).json()
        unknown = await client.post(
            "/token", data={"grant_type": "refresh_token", "refresh_token": "nope"}
        )
        wrong_client = await client.post(
            "/token",
            data={
                "grant_type": "refresh_token",
                "refresh_token": issued["refresh_token"],
                "client_id": "antalmanac",
            },
        )

    assert unknown.json()["error"] == "invalid_grant"
    assert wrong_client.json()["error"] == "invalid_grant"


@pytest.mark.anyio
async def test_confidential_client_requires_basic_auth(oauth_overrides):
    services = oauth_overrides
    redirect_uri = "https://app.example.org/callback"

    async with _client() as client:
        code = _issue_code(services, client_id="confidential", redirect_uri=redirect_uri)
        form = _code_form(code, client_id="confidential", redirect_uri=redirect_uri)

        anonymous = await client.post("/token", data=form)
        wrong_secret = await client.post(
            "/token", data=form, headers=_basic("confidential", "guess")
        )
        authenticated = await client.post(
            "/token", data=form, headers=_basic("confidential", "s3cret")
        )

    assert anonymous.status_code == 401
    assert anonymous.json()["error"] == "invalid_client"
    assert anonymous.headers["www-authenticate"].startswith("Basic")
    assert wrong_secret.status_code == 401
    assert authenticated.status_code == 200
