"""
FastAPI application entrypoint for the authorization server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.routes import router as api_router
from app.api.well_known import router as well_known_router
from app.core.config import get_settings
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging
from app.dependencies import get_signing_key_manager


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Make sure a signing key exists before the first token request."""
    factory = app.dependency_overrides.get(get_signing_key_manager, get_signing_key_manager)
    factory().ensure_key_pair()
    yield


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Federated OAuth2/OIDC Authorization Server",
        version="0.1.0",
        description="Issues PKCE-bound codes and RS256-signed tokens on top of Google sign-in.",
        lifespan=lifespan,
    )
    register_exception_handlers(app)
    app.include_router(well_known_router)
    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
