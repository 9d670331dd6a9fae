"""
FastAPI routes for the authorization server.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, Query, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from app.core.errors import OAuthError
from app.dependencies import (
    get_authorization_engine,
    get_client_registry,
    get_session_check,
    get_session_manager,
    get_token_service,
    get_userinfo_resolver,
)
from app.schemas import SessionStatus, SessionUser
from app.services import InvalidOriginError

router = APIRouter()
logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/authorize")
async def authorize(
    request: Request,
    engine: Annotated[Any, Depends(get_authorization_engine)],
    sessions: Annotated[Any, Depends(get_session_manager)],
) -> Response:
    """Start or continue the authorization code + PKCE flow."""
    redirect_url = engine.authorize(request.query_params, sessions.current(request))
    return RedirectResponse(url=redirect_url, status_code=HTTPStatus.FOUND)


@router.get("/callback/google")
async def google_callback(
    engine: Annotated[Any, Depends(get_authorization_engine)],
    sessions: Annotated[Any, Depends(get_session_manager)],
    code: str | None = Query(default=None, description="Authorization code from Google."),
    state: str | None = Query(default=None, description="State issued by /authorize."),
    error: str | None = Query(default=None, description="Error reported by Google."),
) -> Response:
    """Complete the Google login, open a session, and hand a code to the client."""
    session_id, redirect_url = await engine.complete_federation(
        code=code, state=state, error=error
    )
    response = RedirectResponse(url=redirect_url, status_code=HTTPStatus.FOUND)
    sessions.set_cookie(response, session_id)
    return response


@router.post("/token")
async def token(
    request: Request,
    service: Annotated[Any, Depends(get_token_service)],
    authorization: str | None = Header(default=None),
) -> Response:
    """Exchange an authorization code or refresh token for tokens."""
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("application/json"):
            body = await request.json()
        else:
            body = await request.form()
    except ValueError as exc:
        raise OAuthError("invalid_request") from exc
    if not hasattr(body, "get"):
        raise OAuthError("invalid_request")

    result = await service.exchange(body, authorization=authorization)
    return JSONResponse(
        content=result.model_dump(exclude_none=True), headers=NO_STORE
    )


@router.get("/userinfo")
async def userinfo(
    resolver: Annotated[Any, Depends(get_userinfo_resolver)],
    authorization: str | None = Header(default=None),
) -> Response:
    """Return the claims released by the bearer token's scope."""
    return JSONResponse(content=resolver.resolve(authorization), headers=NO_STORE)


@router.get("/session")
async def session_status(
    request: Request,
    sessions: Annotated[Any, Depends(get_session_manager)],
) -> Response:
    """Report whether the browser holds a live session."""
    session = sessions.current(request)
    if session is None:
        return JSONResponse(
            status_code=HTTPStatus.UNAUTHORIZED,
            content=SessionStatus(valid=False).model_dump(exclude_none=True),
            headers=NO_STORE,
        )
    payload = SessionStatus(
        valid=True,
        user=SessionUser(
            id=session.user_id,
            email=session.email,
            name=session.name,
            picture=session.picture,
        ),
    )
    return JSONResponse(content=payload.model_dump(exclude_none=True), headers=NO_STORE)


@router.get("/session/check")
async def session_check(
    request: Request,
    checker: Annotated[Any, Depends(get_session_check)],
    sessions: Annotated[Any, Depends(get_session_manager)],
    origin: str | None = Query(default=None, description="Origin of the embedding page."),
) -> Response:
    """Answer a silent SSO check via postMessage to the embedding origin."""
    try:
        html, target_origin = checker.render(origin, sessions.current(request))
    except InvalidOriginError:
        logger.warning("Rejected session check from unregistered origin")
        raise OAuthError(
            "invalid_origin", "Origin is not registered.", status_code=HTTPStatus.FORBIDDEN
        ) from None

    return HTMLResponse(
        content=html,
        headers={
            **NO_STORE,
            "Content-Security-Policy": f"frame-ancestors {target_origin}",
        },
    )


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(
    request: Request,
    sessions: Annotated[Any, Depends(get_session_manager)],
    registry: Annotated[Any, Depends(get_client_registry)],
    redirect_to: str | None = Query(
        default=None,
        description="Registered client URL to return to after logout.",
    ),
) -> Response:
    """End the browser session and clear its cookie."""
    if redirect_to and not registry.is_allowed_redirect(redirect_to):
        logger.warning("Rejected logout redirect target")
        raise OAuthError("invalid_redirect", "redirect_to is not a registered client URL.")

    sessions.delete(sessions.session_id_from(request))

    response: Response
    if redirect_to:
        response = RedirectResponse(url=redirect_to, status_code=HTTPStatus.FOUND)
    else:
        response = JSONResponse(content={"success": True}, headers=NO_STORE)
    sessions.clear_cookie(response)
    return response


__all__ = ["router"]
