"""SQLite-backed key-value store with per-key TTL for credentials."""

from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol


class CredentialStore(Protocol):
    """Per-key atomic get/put/delete with TTL; no multi-key transactions."""

    def get(self, namespace: str, key: str) -> Optional[Dict[str, Any]]: ...

    def put(
        self,
        namespace: str,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None,
    ) -> None: ...

    def add(
        self,
        namespace: str,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None,
    ) -> bool: ...

    def delete(self, namespace: str, key: str) -> bool: ...


class SQLiteCredentialStore:
    """Namespaced JSON records keyed by (namespace, key) with lazy TTL eviction."""

    def __init__(self, db_path: str, *, clock: Callable[[], float] = time.time) -> None:
        self._db_path = Path(db_path)
        self._clock = clock
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS credential_records (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    data TEXT NOT NULL,
                    expires_at REAL,
                    PRIMARY KEY (namespace, key)
                )
                """
            )

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[float]:
        if ttl_seconds is None:
            return None
        return self._clock() + ttl_seconds

    def _prune(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            "DELETE FROM credential_records WHERE expires_at IS NOT NULL AND expires_at <= ?",
            (self._clock(),),
        )

    def get(self, namespace: str, key: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT data FROM credential_records
                WHERE namespace = ? AND key = ?
                  AND (expires_at IS NULL OR expires_at > ?)
                """,
                (namespace, key, self._clock()),
            ).fetchone()
        if not row:
            return None
        return json.loads(row["data"])

    def put(
        self,
        namespace: str,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None,
    ) -> None:
        data_json = json.dumps(value)
        with self._connect() as conn:
            self._prune(conn)
            conn.execute(
                """
                INSERT INTO credential_records (namespace, key, data, expires_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(namespace, key) DO UPDATE SET
                    data = excluded.data,
                    expires_at = excluded.expires_at
                """,
                (namespace, key, data_json, self._expiry(ttl_seconds)),
            )

    def add(
        self,
        namespace: str,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None,
    ) -> bool:
        """Write only when no live record exists; report whether it was written."""
        data_json = json.dumps(value)
        with self._connect() as conn:
            self._prune(conn)
            cursor = conn.execute(
                """
                INSERT INTO credential_records (namespace, key, data, expires_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(namespace, key) DO NOTHING
                """,
                (namespace, key, data_json, self._expiry(ttl_seconds)),
            )
            return cursor.rowcount == 1

    def delete(self, namespace: str, key: str) -> bool:
        """Remove a record; True only if a live record was removed by this call."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                DELETE FROM credential_records
                WHERE namespace = ? AND key = ?
                  AND (expires_at IS NULL OR expires_at > ?)
                """,
                (namespace, key, self._clock()),
            )
            removed = cursor.rowcount == 1
            self._prune(conn)
        return removed


__all__ = ["CredentialStore", "SQLiteCredentialStore"]
