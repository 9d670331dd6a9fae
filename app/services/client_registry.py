"""
Registered OAuth clients and redirect URI validation.

A redirect URI is accepted for a client when it either extends the client's
registered redirect URI (same scheme, host, and port, path prefix) or matches
one of the client's wildcard domain patterns. ``is_allowed_redirect`` applies
the same two primitives across every client and guards the logout and
session-check endpoints against open redirects.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Literal, NamedTuple, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}


class Client(BaseModel):
    """A downstream application allowed to request tokens."""

    client_id: str
    client_secret: Optional[str] = None
    redirect_uri: str
    token_endpoint_auth_method: Literal["none", "client_secret_basic"] = "none"
    name: str
    allowed_domain_patterns: List[str] = Field(default_factory=list)

    @property
    def is_public(self) -> bool:
        return self.token_endpoint_auth_method == "none"


class _ParsedUrl(NamedTuple):
    scheme: str
    hostname: str
    port: Optional[int]
    path: str


def _parse_url(url: str) -> Optional[_ParsedUrl]:
    """Split an absolute URL; ``None`` if it has no scheme or host."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    scheme = parts.scheme.lower()
    if port == _DEFAULT_PORTS.get(scheme):
        port = None
    return _ParsedUrl(scheme, parts.hostname, port, parts.path or "/")


def hostname_pattern_regex(pattern_hostname: str) -> re.Pattern[str]:
    """Compile a wildcard hostname such as ``staging-*.example.com``.

    A ``*`` matches one or more characters within a single label.
    """
    labels = []
    for label in pattern_hostname.split("."):
        if label == "*":
            labels.append(r"[^.]+")
        elif "*" in label:
            labels.append(r"[^.]+".join(re.escape(piece) for piece in label.split("*")))
        else:
            labels.append(re.escape(label))
    return re.compile("^" + r"\.".join(labels) + "$")


def matches_exact_redirect_uri(url: str, registered_uri: str) -> bool:
    """Same scheme, host, and port; path must start with the registered path."""
    candidate = _parse_url(url)
    registered = _parse_url(registered_uri)
    if candidate is None or registered is None:
        return False
    return (
        candidate.scheme == registered.scheme
        and candidate.hostname == registered.hostname
        and candidate.port == registered.port
        and candidate.path.startswith(registered.path)
    )


def matches_domain_pattern(url: str, pattern: str) -> bool:
    """Scheme and port compared literally; hostname compared by wildcard labels."""
    candidate = _parse_url(url)
    parsed_pattern = _parse_url(pattern)
    if candidate is None or parsed_pattern is None:
        return False
    return (
        candidate.scheme == parsed_pattern.scheme
        and candidate.port == parsed_pattern.port
        and hostname_pattern_regex(parsed_pattern.hostname).match(candidate.hostname)
        is not None
    )


def redirect_allowed_for_client(client: Client, url: str) -> bool:
    if matches_exact_redirect_uri(url, client.redirect_uri):
        return True
    return any(
        matches_domain_pattern(url, pattern) for pattern in client.allowed_domain_patterns
    )


DEFAULT_CLIENTS: List[dict] = [
    {
        "client_id": "antalmanac",
        "redirect_uri": "https://antalmanac.com/auth",
        "name": "AntAlmanac",
        "allowed_domain_patterns": [
            "https://antalmanac.com",
            "https://staging-*.antalmanac.com",
        ],
    },
    {
        "client_id": "antalmanac-dev",
        "redirect_uri": "http://localhost:5173/auth",
        "name": "AntAlmanac Dev",
        "allowed_domain_patterns": ["http://localhost:5173"],
    },
    {
        "client_id": "peterportal",
        "redirect_uri": "https://peterportal.com/api/users/auth/google/callback",
        "name": "PeterPortal",
        "allowed_domain_patterns": [
            "https://peterportal.org",
            "https://staging-*.peterportal.org",
        ],
    },
    {
        "client_id": "peterportal-dev",
        "redirect_uri": "http://localhost:8080/api/users/auth/google/callback",
        "name": "PeterPortal Dev",
        "allowed_domain_patterns": ["http://localhost:8080", "http://localhost:3000"],
    },
    {
        "client_id": "zotmeet",
        "redirect_uri": "https://zotmeet.com/auth/login/google/callback",
        "name": "ZotMeet",
        "allowed_domain_patterns": [
            "https://zotmeet.com",
            "https://staging-*.zotmeet.com",
        ],
    },
    {
        "client_id": "zotmeet-dev",
        "redirect_uri": "http://localhost:3000/auth/login/google/callback",
        "name": "ZotMeet Dev",
        "allowed_domain_patterns": ["http://localhost:3000"],
    },
    {
        "client_id": "test",
        "redirect_uri": "http://localhost:3000/auth",
        "name": "Test",
        "allowed_domain_patterns": ["http://localhost:3000"],
    },
]


class ClientRegistry:
    """Read-only table of registered clients, built once at startup."""

    def __init__(self, clients: Iterable[Client]) -> None:
        self._clients: Dict[str, Client] = {}
        for client in clients:
            if client.client_id in self._clients:
                raise ValueError(f"Duplicate client_id {client.client_id!r}")
            self._clients[client.client_id] = client

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "ClientRegistry":
        return cls(Client.model_validate(record) for record in records)

    @classmethod
    def from_file(cls, path: str) -> "ClientRegistry":
        """Load registrations from a JSON list of client objects."""
        records = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(records, list):
            raise ValueError(f"{path} must contain a JSON list of clients")
        return cls.from_records(records)

    def get(self, client_id: str) -> Optional[Client]:
        return self._clients.get(client_id)

    def __iter__(self):
        return iter(self._clients.values())

    def __len__(self) -> int:
        return len(self._clients)

    def validate(self, client_id: str, redirect_uri: str) -> Optional[Client]:
        """Return the client if ``redirect_uri`` is registered for it."""
        client = self.get(client_id)
        if client is None:
            return None
        if not redirect_allowed_for_client(client, redirect_uri):
            logger.info("Rejected redirect_uri for client %s", client_id)
            return None
        return client

    def is_allowed_redirect(self, url: str) -> bool:
        """True if ``url`` is a valid redirect target for any registered client."""
        return any(redirect_allowed_for_client(client, url) for client in self)


__all__ = [
    "Client",
    "ClientRegistry",
    "DEFAULT_CLIENTS",
    "hostname_pattern_regex",
    "matches_domain_pattern",
    "matches_exact_redirect_uri",
    "redirect_allowed_for_client",
]
