"""Bearer access token to OIDC userinfo claims."""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional

from app.core.errors import MalformedRecordError, invalid_token
from app.models.oauth import ACCESS_TOKENS, AccessTokenRecord
from app.services.records import RecordRepository


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):].strip() or None


class UserInfoResolver:
    def __init__(
        self, records: RecordRepository, *, clock: Callable[[], float] = time.time
    ) -> None:
        self._records = records
        self._clock = clock

    def resolve(self, authorization: Optional[str]) -> Dict[str, str]:
        """Claims for the token in ``authorization``, filtered by its scope.

        ``sub`` and ``picture`` are always released; ``name`` needs the
        ``profile`` scope and ``email`` needs the ``email`` scope.
        """
        token = bearer_token(authorization)
        if token is None:
            raise invalid_token()
        try:
            record = self._records.load(ACCESS_TOKENS, token, AccessTokenRecord)
        except MalformedRecordError:
            record = None
        if record is None:
            raise invalid_token()
        if record.exp < int(self._clock()):
            raise invalid_token("Token expired")

        scopes = record.scope.split()
        claims: Dict[str, str] = {"sub": record.user_id}
        if record.picture:
            claims["picture"] = record.picture
        if "profile" in scopes:
            claims["name"] = record.name
        if "email" in scopes:
            claims["email"] = record.email
        return claims


__all__ = ["UserInfoResolver", "bearer_token"]
