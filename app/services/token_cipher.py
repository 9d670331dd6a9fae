"""Symmetric encryption for Google tokens held inside our stored records."""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any, Dict

from cryptography.fernet import Fernet, InvalidToken


class TokenCipherService:
    """Seal and unseal federated token bundles using a derived Fernet key."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def seal(self, payload: Dict[str, Any]) -> str:
        """Encrypt a JSON-serializable mapping into an opaque string."""
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        return self._fernet.encrypt(serialized.encode("utf-8")).decode("utf-8")

    def unseal(self, ciphertext: str) -> Dict[str, Any]:
        """Reverse :meth:`seal`; raises ``ValueError`` for foreign or corrupt input."""
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt federated tokens; invalid ciphertext provided."
            ) from exc
        payload = json.loads(plaintext)
        if not isinstance(payload, dict):
            raise ValueError("Sealed payload is not an object.")
        return payload


__all__ = ["TokenCipherService"]
