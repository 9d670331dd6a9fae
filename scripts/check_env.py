"""Pre-flight check for an authorization server deployment.

Loads ``AppSettings`` from an env file and reports every setting combination
the server would accept at import time but that breaks sign-in or weakens
token handling once deployed:

* ``SESSION_COOKIE_SAMESITE=none`` without ``SESSION_COOKIE_SECURE`` (browsers
  drop the SSO cookie).
* Production deployments with an ``http://`` issuer, insecure cookies, or no
  dedicated ``STATE_SIGNING_SECRET`` / ``TOKEN_ENCRYPTION_SECRET`` (both fall
  back to ``GOOGLE_CLIENT_SECRET`` otherwise, so rotating Google credentials
  would invalidate every stored token).
* A ``CLIENTS_FILE`` that cannot be parsed or registers no clients.
* ``REFRESH_TTL_SECONDS`` that is not longer than ``TOKEN_TTL_SECONDS``.

With ``--check-store`` it also writes, reads and deletes a scratch record in
the configured credential store so an unreachable SQLite path or DynamoDB
table is caught before the first authorize request.

Example usages::

    python -m scripts.check_env --env-file /etc/oidc-server/.env
    python -m scripts.check_env --env-file /etc/oidc-server/.env --check-store
"""

from __future__ import annotations

import argparse
import sqlite3
import sys
import uuid
from pathlib import Path
from typing import List

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from app.core.config import AppSettings, _load_env_file
from app.dependencies import build_credential_store
from app.services.client_registry import ClientRegistry

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_STORE_ERROR = 4
EXIT_RUNTIME_ERROR = 5

HEALTH_NAMESPACE = "health"


def find_problems(settings: AppSettings) -> List[str]:
    """Return a human-readable line for each unsafe or inconsistent setting."""
    problems: List[str] = []
    production = settings.environment == "production"

    if settings.cookie.samesite == "none" and not settings.cookie.secure:
        problems.append(
            "SESSION_COOKIE_SAMESITE=none requires SESSION_COOKIE_SECURE=true; "
            "browsers reject the session cookie otherwise."
        )

    if production:
        if not settings.oauth.issuer.startswith("https://"):
            problems.append(f"ISSUER must use https in production, got {settings.oauth.issuer}.")
        if not settings.cookie.secure:
            problems.append("SESSION_COOKIE_SECURE must be true in production.")
        for env_name, value in (
            ("STATE_SIGNING_SECRET", settings.security.state_signing_secret),
            ("TOKEN_ENCRYPTION_SECRET", settings.security.token_encryption_secret),
        ):
            if not value:
                problems.append(
                    f"{env_name} must be set in production instead of "
                    "falling back to GOOGLE_CLIENT_SECRET."
                )

    if settings.oauth.refresh_ttl_seconds <= settings.oauth.token_ttl_seconds:
        problems.append("REFRESH_TTL_SECONDS must be longer than TOKEN_TTL_SECONDS.")

    if settings.store.backend == "dynamodb" and not settings.store.dynamodb_table_name:
        problems.append("DYNAMODB_TABLE_NAME is required when CREDENTIAL_STORE_BACKEND=dynamodb.")

    if settings.oauth.clients_file:
        try:
            registry = ClientRegistry.from_file(settings.oauth.clients_file)
        except (OSError, ValueError) as exc:
            problems.append(f"CLIENTS_FILE {settings.oauth.clients_file} could not be loaded: {exc}")
        else:
            if len(registry) == 0:
                problems.append(f"CLIENTS_FILE {settings.oauth.clients_file} registers no clients.")

    return problems


def check_store(settings: AppSettings) -> None:
    """Round-trip a short-lived scratch record through the credential store."""
    store = build_credential_store(settings.store)
    key = f"check-env-{uuid.uuid4().hex}"
    store.put(HEALTH_NAMESPACE, key, {"ok": True}, ttl_seconds=60)
    try:
        if store.get(HEALTH_NAMESPACE, key) != {"ok": True}:
            raise RuntimeError("Credential store did not return the record it just stored.")
    finally:
        store.delete(HEALTH_NAMESPACE, key)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate authorization server settings before starting it."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    parser.add_argument(
        "--check-store",
        action="store_true",
        help="Also write and read a scratch record in the credential store.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    _load_env_file(str(env_file))
    try:
        settings = AppSettings()  # type: ignore[call-arg]
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    problems = find_problems(settings)
    if problems:
        print("Configuration rejected:", file=sys.stderr)
        for problem in problems:
            print(f"  - {problem}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    if args.check_store:
        try:
            check_store(settings)
        except (sqlite3.Error, OSError, BotoCoreError, ClientError, RuntimeError) as exc:
            print(f"Credential store check failed ({settings.store.backend}): {exc}", file=sys.stderr)
            return EXIT_STORE_ERROR

    print("Configuration OK.")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
