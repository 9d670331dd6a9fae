try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from app.services.token_cipher import TokenCipherService


def test_token_cipher_roundtrip() -> None:
    cipher = TokenCipherService(secret="super-secret-key")
    payload = {"access_token": "sensitive-token", "expiry": 1700000000000}

    sealed = cipher.seal(payload)
    assert "sensitive-token" not in sealed

    assert cipher.unseal(sealed) == payload


def test_token_cipher_rejects_bad_ciphertext() -> None:
    cipher = TokenCipherService(secret="another-secret")

    with pytest.raises(ValueError):
        cipher.unseal("not-valid")


def test_token_cipher_rejects_other_secret() -> None:
    sealed = TokenCipherService(secret="one").seal({"refresh_token": "r"})

    with pytest.raises(ValueError):
        TokenCipherService(secret="two").unseal(sealed)


def test_token_cipher_requires_secret() -> None:
    with pytest.raises(ValueError):
        TokenCipherService(secret="")
