"""
Typed persistence for sessions, codes, tokens, and keys.

Records are dumped to JSON for the credential store and parsed back through
their pydantic models on every read. Any federated tokens are sealed with the
token cipher before they touch the store.
"""

from __future__ import annotations

import logging
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.clients.sqlite_store import CredentialStore
from app.core.errors import MalformedRecordError
from app.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

_SEALED_FIELD = "federated_sealed"


class RecordRepository:
    """Schema-checked access to the credential store."""

    def __init__(self, store: CredentialStore, cipher: TokenCipherService) -> None:
        self._store = store
        self._cipher = cipher

    def _dump(self, record: BaseModel) -> dict:
        data = record.model_dump(mode="json", by_alias=True, exclude_none=True)
        federated = data.pop("federated", None)
        if federated:
            data[_SEALED_FIELD] = self._cipher.seal(federated)
        return data

    def save(
        self,
        namespace: str,
        key: str,
        record: BaseModel,
        *,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        self._store.put(namespace, key, self._dump(record), ttl_seconds)

    def add(
        self,
        namespace: str,
        key: str,
        record: BaseModel,
        *,
        ttl_seconds: Optional[int] = None,
    ) -> bool:
        """Persist only if the slot is empty; returns whether this call wrote it."""
        return self._store.add(namespace, key, self._dump(record), ttl_seconds)

    def load(
        self, namespace: str, key: str, model: Type[RecordT]
    ) -> Optional[RecordT]:
        """Return the parsed record, ``None`` when absent or expired.

        Raises ``MalformedRecordError`` when the stored blob fails validation.
        """
        raw = self._store.get(namespace, key)
        if raw is None:
            return None
        if not isinstance(raw, dict):
            raise MalformedRecordError(f"{namespace} record is not an object")

        data = dict(raw)
        sealed = data.pop(_SEALED_FIELD, None)
        if sealed is not None:
            try:
                data["federated"] = self._cipher.unseal(sealed)
            except (TypeError, ValueError) as exc:
                raise MalformedRecordError(
                    f"{namespace} record has unreadable federated tokens"
                ) from exc
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "Discarding malformed %s record (%d validation errors)",
                namespace,
                exc.error_count(),
            )
            raise MalformedRecordError(f"{namespace} record failed validation") from exc

    def delete(self, namespace: str, key: str) -> bool:
        return self._store.delete(namespace, key)


__all__ = ["RecordRepository"]
