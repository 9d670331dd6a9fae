try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from app.main import app


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="https://testserver"
    )


@pytest.mark.anyio
async def test_discovery_document_points_at_issuer(oauth_overrides):
    issuer = oauth_overrides.oauth.issuer

    async with _client() as client:
        response = await client.get("/.well-known/openid-configuration")

    assert response.status_code == 200
    document = response.json()
    assert document["issuer"] == issuer
    assert document["authorization_endpoint"] == f"{issuer}/authorize"
    assert document["token_endpoint"] == f"{issuer}/token"
    assert document["userinfo_endpoint"] == f"{issuer}/userinfo"
    assert document["jwks_uri"] == f"{issuer}/jwks.json"
    assert document["code_challenge_methods_supported"] == ["S256"]
    assert document["id_token_signing_alg_values_supported"] == ["RS256"]
    assert set(document["scopes_supported"]) >= {"openid", "profile", "email"}


@pytest.mark.anyio
async def test_jwks_publishes_current_public_key(oauth_overrides):
    kid = oauth_overrides.signing_keys.load_current().kid

    async with _client() as client:
        response = await client.get("/jwks.json")

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store"
    (key,) = response.json()["keys"]
    assert key["kid"] == kid
    assert key["kty"] == "RSA"
    assert not {"d", "p", "q", "dp", "dq", "qi"} & set(key)


@pytest.mark.anyio
async def test_healthcheck(oauth_overrides):
    async with _client() as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
