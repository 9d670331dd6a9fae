"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import (
    CredentialStore,
    DynamoDBCredentialStore,
    GoogleOAuthClient,
    OAuthStateEncoder,
    SQLiteCredentialStore,
)
from app.core.config import StoreSettings, get_settings
from app.services import (
    DEFAULT_CLIENTS,
    AuthorizationEngine,
    ClientRegistry,
    RecordRepository,
    SessionManager,
    SigningKeyManager,
    SsoSessionCheck,
    TokenCipherService,
    TokenService,
    UserInfoResolver,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_client_registry() -> ClientRegistry:
    """Build the client registry once from configuration."""
    settings = _settings()
    if settings.oauth.clients_file:
        return ClientRegistry.from_file(settings.oauth.clients_file)
    return ClientRegistry.from_records(DEFAULT_CLIENTS)


def build_credential_store(store_settings: StoreSettings) -> CredentialStore:
    """Open the backend selected by CREDENTIAL_STORE_BACKEND."""
    if store_settings.backend == "dynamodb":
        return DynamoDBCredentialStore(store_settings)
    return SQLiteCredentialStore(store_settings.sqlite_path)


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Provide the configured key-value store for credentials."""
    return build_credential_store(_settings().store)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for stored Google tokens."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.google.client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_record_repository() -> RecordRepository:
    return RecordRepository(get_credential_store(), get_token_cipher_service())


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder keyed by the state secret."""
    settings = _settings()
    secret = settings.security.state_signing_secret or settings.google.client_secret
    return OAuthStateEncoder(secret_key=secret, ttl_seconds=settings.oauth.state_ttl_seconds)


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client."""
    return GoogleOAuthClient(_settings().google)


@lru_cache()
def get_signing_key_manager() -> SigningKeyManager:
    settings = _settings()
    return SigningKeyManager(
        get_record_repository(),
        rotation_grace_seconds=settings.oauth.token_ttl_seconds,
    )


@lru_cache()
def get_session_manager() -> SessionManager:
    settings = _settings()
    return SessionManager(
        get_record_repository(),
        settings.cookie,
        ttl_seconds=settings.oauth.session_ttl_seconds,
    )


def get_authorization_engine() -> AuthorizationEngine:
    """Build the authorize/callback state machine."""
    settings = _settings()
    return AuthorizationEngine(
        registry=get_client_registry(),
        sessions=get_session_manager(),
        records=get_record_repository(),
        google_client=get_google_oauth_client(),
        state_encoder=get_oauth_state_encoder(),
        code_ttl_seconds=settings.oauth.code_ttl_seconds,
    )


def get_token_service() -> TokenService:
    """Build the token endpoint service."""
    settings = _settings()
    return TokenService(
        registry=get_client_registry(),
        records=get_record_repository(),
        signing_keys=get_signing_key_manager(),
        google_client=get_google_oauth_client(),
        issuer=settings.oauth.issuer,
        token_ttl_seconds=settings.oauth.token_ttl_seconds,
        refresh_ttl_seconds=settings.oauth.refresh_ttl_seconds,
    )


def get_userinfo_resolver() -> UserInfoResolver:
    return UserInfoResolver(get_record_repository())


def get_session_check() -> SsoSessionCheck:
    return SsoSessionCheck(get_client_registry())


__all__ = [
    "get_authorization_engine",
    "get_client_registry",
    "get_credential_store",
    "get_google_oauth_client",
    "get_oauth_state_encoder",
    "get_record_repository",
    "get_session_check",
    "get_session_manager",
    "get_signing_key_manager",
    "get_token_cipher_service",
    "get_token_service",
    "get_userinfo_resolver",
]
