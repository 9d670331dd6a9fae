"""Rotate the ID token signing key in the configured credential store.

The new key pair becomes ``current`` immediately; the outgoing pair stays in the
JWKS for one token lifetime so tokens it signed keep verifying.

Example usage::

    python -m scripts.rotate_signing_key --env-file /etc/oidc-server/.env
"""

from __future__ import annotations

import argparse
import sqlite3
import sys
from pathlib import Path

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from app.core.config import _load_env_file
from app.core.logging import configure_logging
from app.dependencies import get_signing_key_manager

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_RUNTIME_ERROR = 5


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rotate the RS256 signing key.")
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    parser.add_argument(
        "--show-jwks",
        action="store_true",
        help="Print the resulting key ids published in the JWKS.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    _load_env_file(str(args.env_file))
    configure_logging("INFO")

    try:
        manager = get_signing_key_manager()
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    try:
        key_pair = manager.rotate()
    except (OSError, sqlite3.Error, BotoCoreError, ClientError) as exc:
        print(f"Could not reach the credential store: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    print(f"New signing key kid={key_pair.kid}")
    if args.show_jwks:
        for jwk in manager.get_public_jwks()["keys"]:
            print(f"  published kid={jwk['kid']}")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
