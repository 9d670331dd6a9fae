try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from app.core.errors import OAuthError
from app.main import app
from app.models.oauth import ACCESS_TOKENS, AccessTokenRecord
from app.services.userinfo import bearer_token


def _store_token(services, token: str, *, scope: str, exp_offset: int = 3600, picture=None):
    record = AccessTokenRecord(
        user_id="google_1",
        email="anteater@uci.edu",
        name="Anteater",
        picture=picture,
        scope=scope,
        exp=int(services.clock.now) + exp_offset,
    )
    services.records.save(ACCESS_TOKENS, token, record)


@pytest.mark.parametrize(
    ("scope", "expected"),
    [
        ("openid", {"sub": "google_1"}),
        ("openid email", {"sub": "google_1", "email": "anteater@uci.edu"}),
        ("openid profile", {"sub": "google_1", "name": "Anteater"}),
        (
            "openid profile email",
            {"sub": "google_1", "name": "Anteater", "email": "anteater@uci.edu"},
        ),
    ],
)
def test_claims_follow_scope(services, scope, expected) -> None:
    _store_token(services, "tok", scope=scope)

    assert services.userinfo.resolve("Bearer tok") == expected


def test_picture_is_released_regardless_of_scope(services) -> None:
    _store_token(services, "tok", scope="openid", picture="https://example.com/p.png")

    assert services.userinfo.resolve("Bearer tok") == {
        "sub": "google_1",
        "picture": "https://example.com/p.png",
    }


def test_expired_token_is_rejected(services) -> None:
    _store_token(services, "tok", scope="openid", exp_offset=-1)

    with pytest.raises(OAuthError) as excinfo:
        services.userinfo.resolve("Bearer tok")

    assert excinfo.value.status_code == 401
    assert excinfo.value.description == "Token expired"


@pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer ", "Bearer unknown"])
def test_missing_or_unknown_token_is_rejected(services, header) -> None:
    with pytest.raises(OAuthError) as excinfo:
        services.userinfo.resolve(header)

    assert excinfo.value.error == "invalid_token"


def test_bearer_token_parsing() -> None:
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("bearer abc") is None
    assert bearer_token(None) is None


@pytest.mark.anyio
async def test_userinfo_endpoint_sends_bearer_challenge(oauth_overrides):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="https://testserver"
    ) as client:
        response = await client.get("/userinfo")

    assert response.status_code == 401
    assert response.json() == {"error": "invalid_token"}
    assert response.headers["www-authenticate"] == 'Bearer error="invalid_token"'
