try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import base64

import pytest

from app.clients.google_auth import OAuthStateEncoder, StateDecodeError


class Clock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


PAYLOAD = {
    "client_id": "test",
    "redirect_uri": "http://localhost:3000/auth",
    "state": "xyz",
    "code_challenge": "challenge",
    "scope": "openid email",
}


def test_state_round_trip_preserves_request() -> None:
    encoder = OAuthStateEncoder("secret", clock=Clock())

    assert encoder.decode(encoder.encode(PAYLOAD)) == PAYLOAD


def test_state_is_url_safe() -> None:
    token = OAuthStateEncoder("secret", clock=Clock()).encode(PAYLOAD)

    assert "+" not in token and "/" not in token


def test_tampered_state_is_rejected() -> None:
    encoder = OAuthStateEncoder("secret", clock=Clock())
    raw = bytearray(base64.urlsafe_b64decode(encoder.encode(PAYLOAD)))
    raw[-2] ^= 0x01
    forged = base64.urlsafe_b64encode(bytes(raw)).decode()

    with pytest.raises(StateDecodeError):
        encoder.decode(forged)


def test_state_signed_with_other_secret_is_rejected() -> None:
    clock = Clock()
    token = OAuthStateEncoder("other", clock=clock).encode(PAYLOAD)

    with pytest.raises(StateDecodeError):
        OAuthStateEncoder("secret", clock=clock).decode(token)


def test_expired_state_is_rejected() -> None:
    clock = Clock()
    encoder = OAuthStateEncoder("secret", ttl_seconds=900, clock=clock)
    token = encoder.encode(PAYLOAD)

    clock.now += 901

    with pytest.raises(StateDecodeError):
        encoder.decode(token)


@pytest.mark.parametrize("garbage", ["", "!!!", "c2hvcnQ="])
def test_garbage_state_is_rejected(garbage: str) -> None:
    with pytest.raises(StateDecodeError):
        OAuthStateEncoder("secret", clock=Clock()).decode(garbage)
