"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    build_credential_store,
    get_authorization_engine,
    get_client_registry,
    get_credential_store,
    get_google_oauth_client,
    get_oauth_state_encoder,
    get_record_repository,
    get_session_check,
    get_session_manager,
    get_signing_key_manager,
    get_token_cipher_service,
    get_token_service,
    get_userinfo_resolver,
)
from .config import SettingsDependency, get_app_settings, get_oauth_settings

__all__ = [
    "build_credential_store",
    "SettingsDependency",
    "get_app_settings",
    "get_authorization_engine",
    "get_client_registry",
    "get_credential_store",
    "get_google_oauth_client",
    "get_oauth_settings",
    "get_oauth_state_encoder",
    "get_record_repository",
    "get_session_check",
    "get_session_manager",
    "get_signing_key_manager",
    "get_token_cipher_service",
    "get_token_service",
    "get_userinfo_resolver",
]
