"""Browser sessions keyed by an opaque id delivered in the session cookie."""

from __future__ import annotations

import logging
import secrets
import time
from typing import Callable, Optional

from fastapi import Request, Response

from app.core.config import SessionCookieSettings
from app.core.errors import MalformedRecordError
from app.models.oauth import SESSIONS, FederatedTokens, Session, UserProfile
from app.services.records import RecordRepository

logger = logging.getLogger(__name__)


class SessionManager:
    """Create, read, and revoke sessions; read and write the session cookie."""

    def __init__(
        self,
        records: RecordRepository,
        cookie_settings: SessionCookieSettings,
        *,
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._records = records
        self._cookie = cookie_settings
        self._ttl = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def create(
        self,
        profile: UserProfile,
        granted_scope: str,
        federated: Optional[FederatedTokens] = None,
    ) -> str:
        session_id = secrets.token_urlsafe(32)
        session = Session(
            user_id=profile.user_id,
            email=profile.email,
            name=profile.name,
            picture=profile.picture,
            scope=granted_scope,
            federated=federated,
            created_at=int(self._clock()),
        )
        self._records.save(SESSIONS, session_id, session, ttl_seconds=self._ttl)
        logger.info("Created session for %s", profile.user_id)
        return session_id

    def get(self, session_id: Optional[str]) -> Optional[Session]:
        if not session_id:
            return None
        try:
            return self._records.load(SESSIONS, session_id, Session)
        except MalformedRecordError:
            return None

    def delete(self, session_id: Optional[str]) -> None:
        if session_id:
            self._records.delete(SESSIONS, session_id)

    def session_id_from(self, request: Request) -> Optional[str]:
        return request.cookies.get(self._cookie.name) or None

    def current(self, request: Request) -> Optional[Session]:
        """Resolve the session referenced by the request's cookie, if any."""
        return self.get(self.session_id_from(request))

    def set_cookie(self, response: Response, session_id: str) -> None:
        response.set_cookie(
            key=self._cookie.name,
            value=session_id,
            max_age=self._ttl,
            path="/",
            domain=self._cookie.domain,
            secure=self._cookie.secure,
            httponly=True,
            samesite=self._cookie.samesite,
        )

    def clear_cookie(self, response: Response) -> None:
        response.delete_cookie(
            key=self._cookie.name,
            path="/",
            domain=self._cookie.domain,
            secure=self._cookie.secure,
            httponly=True,
            samesite=self._cookie.samesite,
        )


__all__ = ["SessionManager"]
