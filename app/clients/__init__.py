"""Expose constructed client wrappers."""

from .dynamodb import DynamoDBCredentialStore
from .google_auth import (
    GoogleOAuthClient,
    GoogleProfile,
    GoogleTokens,
    OAuthStateEncoder,
)
from .sqlite_store import CredentialStore, SQLiteCredentialStore

__all__ = [
    "CredentialStore",
    "DynamoDBCredentialStore",
    "GoogleOAuthClient",
    "GoogleProfile",
    "GoogleTokens",
    "OAuthStateEncoder",
    "SQLiteCredentialStore",
]
