"""
Protocol error types and the FastAPI handlers that render them.

Every OAuth2/OIDC failure leaves the server as ``{"error": ..., "error_description": ...}``
with the status code and challenge headers chosen by the raising service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """OAuth protocol error surfaced to the caller."""

    def __init__(
        self,
        error: str,
        description: Optional[str] = None,
        *,
        status_code: int = HTTPStatus.BAD_REQUEST,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.error = error
        self.description = description
        self.status_code = int(status_code)
        self.headers = dict(headers or {})
        super().__init__(f"{error}: {description}" if description else error)

    def to_body(self) -> dict:
        body = {"error": self.error}
        if self.description:
            body["error_description"] = self.description
        return body


def invalid_token(description: Optional[str] = None) -> OAuthError:
    """Build a 401 bearer-token failure carrying the RFC 6750 challenge."""
    challenge = 'Bearer error="invalid_token"'
    if description:
        challenge += f', error_description="{description}"'
    return OAuthError(
        "invalid_token",
        description,
        status_code=HTTPStatus.UNAUTHORIZED,
        headers={"WWW-Authenticate": challenge},
    )


class MalformedRecordError(Exception):
    """Raised when a stored record does not match its expected schema."""


class SigningKeyUnavailableError(Exception):
    """Raised when the current signing key pair is missing or unreadable."""


def register_exception_handlers(app: FastAPI) -> None:
    """Attach protocol and fallback error handlers to the application."""

    @app.exception_handler(OAuthError)
    async def oauth_error_handler(request: Request, exc: OAuthError) -> JSONResponse:
        if exc.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.error)
        headers = {"Cache-Control": "no-store", "Pragma": "no-cache", **exc.headers}
        return JSONResponse(
            status_code=exc.status_code, content=exc.to_body(), headers=headers
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content={"error": "server_error"},
        )


__all__ = [
    "MalformedRecordError",
    "OAuthError",
    "SigningKeyUnavailableError",
    "invalid_token",
    "register_exception_handlers",
]
