"""
RS256 signing key lifecycle.

The authoritative key pair lives in the credential store under the ``current``
slot. It is created lazily on first use, can be rotated (the outgoing pair is
kept in the ``previous`` slot for one token lifetime), and is published as a
JWKS document.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from app.core.errors import MalformedRecordError, SigningKeyUnavailableError
from app.models.oauth import SIGNING_KEYS, SigningKeyPair
from app.services.records import RecordRepository

logger = logging.getLogger(__name__)

ALGORITHM = "RS256"
CURRENT_SLOT = "current"
PREVIOUS_SLOT = "previous"


def generate_key_pair(key_size: int = 2048) -> SigningKeyPair:
    """Create a fresh RSA key pair with a random kid on both JWKs."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    kid = str(uuid.uuid4())
    private_jwk = RSAAlgorithm.to_jwk(private_key, as_dict=True)
    public_jwk = RSAAlgorithm.to_jwk(private_key.public_key(), as_dict=True)
    for jwk in (private_jwk, public_jwk):
        jwk.pop("key_ops", None)
        jwk["kid"] = kid
    return SigningKeyPair.model_validate(
        {"kid": kid, "publicJwk": public_jwk, "privateJwk": private_jwk}
    )


class SigningKeyManager:
    """Owns the server's signing key pair and signs ID tokens with it."""

    def __init__(
        self,
        records: RecordRepository,
        *,
        rotation_grace_seconds: int = 3600,
        key_size: int = 2048,
    ) -> None:
        self._records = records
        self._grace = rotation_grace_seconds
        self._key_size = key_size

    def _read_slot(self, slot: str) -> Optional[SigningKeyPair]:
        try:
            return self._records.load(SIGNING_KEYS, slot, SigningKeyPair)
        except MalformedRecordError:
            logger.error("Stored %s signing key pair is malformed", slot)
            return None

    def ensure_key_pair(self) -> SigningKeyPair:
        """Return the current key pair, generating and storing one if absent.

        Generation uses a put-if-absent write so that concurrent cold starts
        converge on whichever pair landed first. A malformed current record is
        overwritten.
        """
        existing = self._read_slot(CURRENT_SLOT)
        if existing is not None:
            return existing

        candidate = generate_key_pair(self._key_size)
        if self._records.add(SIGNING_KEYS, CURRENT_SLOT, candidate):
            logger.info("Generated signing key pair kid=%s", candidate.kid)
            return candidate

        winner = self._read_slot(CURRENT_SLOT)
        if winner is not None:
            return winner

        # Occupied by an unreadable record: replace it outright.
        self._records.save(SIGNING_KEYS, CURRENT_SLOT, candidate)
        logger.warning("Replaced malformed signing key pair with kid=%s", candidate.kid)
        return candidate

    def load_current(self) -> SigningKeyPair:
        """Return the current key pair without generating one."""
        key_pair = self._read_slot(CURRENT_SLOT)
        if key_pair is None:
            raise SigningKeyUnavailableError("No usable signing key pair is stored.")
        return key_pair

    def rotate(self) -> SigningKeyPair:
        """Install a new current key pair and keep the old one verifiable."""
        outgoing = self._read_slot(CURRENT_SLOT)
        incoming = generate_key_pair(self._key_size)
        if outgoing is not None:
            self._records.save(
                SIGNING_KEYS, PREVIOUS_SLOT, outgoing, ttl_seconds=self._grace
            )
        self._records.save(SIGNING_KEYS, CURRENT_SLOT, incoming)
        logger.info(
            "Rotated signing key kid=%s -> kid=%s",
            outgoing.kid if outgoing else None,
            incoming.kid,
        )
        return incoming

    def get_public_jwks(self) -> Dict[str, List[Dict[str, Any]]]:
        keys = []
        for key_pair in (self.ensure_key_pair(), self._read_slot(PREVIOUS_SLOT)):
            if key_pair is None:
                continue
            keys.append(
                {
                    **key_pair.public_jwk.model_dump(exclude_none=True),
                    "alg": ALGORITHM,
                    "use": "sig",
                }
            )
        return {"keys": keys}

    def sign(self, claims: Dict[str, Any], key_pair: Optional[SigningKeyPair] = None) -> str:
        """Sign ``claims`` as a compact JWS with the current (or given) key."""
        key_pair = key_pair or self.load_current()
        private_key = RSAAlgorithm.from_jwk(
            key_pair.private_jwk.model_dump(exclude_none=True)
        )
        return jwt.encode(
            claims,
            private_key,
            algorithm=ALGORITHM,
            headers={"kid": key_pair.kid},
        )

    def verify(self, token: str, *, audience: str, issuer: str) -> Dict[str, Any]:
        """Verify a token against the published keys and return its claims."""
        kid = jwt.get_unverified_header(token).get("kid")
        for slot in (CURRENT_SLOT, PREVIOUS_SLOT):
            key_pair = self._read_slot(slot)
            if key_pair is not None and key_pair.kid == kid:
                public_key = RSAAlgorithm.from_jwk(
                    key_pair.public_jwk.model_dump(exclude_none=True)
                )
                return jwt.decode(
                    token,
                    public_key,
                    algorithms=[ALGORITHM],
                    audience=audience,
                    issuer=issuer,
                )
        raise jwt.InvalidKeyError(f"Unknown signing key {kid!r}")


__all__ = ["ALGORITHM", "SigningKeyManager", "generate_key_pair"]
