"""Service layer exports."""

from .authorization import AuthorizationEngine
from .client_registry import DEFAULT_CLIENTS, Client, ClientRegistry
from .records import RecordRepository
from .session_check import InvalidOriginError, SsoSessionCheck
from .sessions import SessionManager
from .signing_keys import SigningKeyManager
from .token_cipher import TokenCipherService
from .tokens import TokenService
from .userinfo import UserInfoResolver

__all__ = [
    "AuthorizationEngine",
    "Client",
    "ClientRegistry",
    "DEFAULT_CLIENTS",
    "InvalidOriginError",
    "RecordRepository",
    "SessionManager",
    "SigningKeyManager",
    "SsoSessionCheck",
    "TokenCipherService",
    "TokenService",
    "UserInfoResolver",
]
