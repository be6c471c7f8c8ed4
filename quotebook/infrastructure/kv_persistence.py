from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from quotebook.core.errors import PersistenceError
from quotebook.domain.models import ConflictEntry, QuoteRecord
from quotebook.domain.ports import ConflictPersistencePort, KeyValueStorePort, RecordPersistencePort

logger = logging.getLogger(__name__)

QUOTES_KEY = "quotes"
CONFLICTS_KEY = "pending_conflicts"


def _load_list(store: KeyValueStorePort, key: str) -> list[Any]:
    raw = store.get(key)
    if not raw:
        return []
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"Contenido JSON inválido en '{key}'.") from exc
    if not isinstance(payload, list):
        raise PersistenceError(f"Se esperaba una lista en '{key}'.")
    return payload


class KeyValueRecordPersistence(RecordPersistencePort):
    """Guarda la colección completa como un único blob JSON."""

    def __init__(self, store: KeyValueStorePort, key: str = QUOTES_KEY) -> None:
        self._store = store
        self._key = key

    def load(self) -> list[QuoteRecord]:
        payload = _load_list(self._store, self._key)
        legacy = any(isinstance(item, dict) and not item.get("id") for item in payload)
        try:
            records = [QuoteRecord.from_dict(item) for item in payload if isinstance(item, dict)]
        except ValueError as exc:
            raise PersistenceError(f"Registro inválido en '{self._key}': {exc}") from exc
        if legacy:
            # Los ids generados al migrar deben ser estables entre arranques.
            logger.info("Migrando %s citas sin id al formato actual", len(records))
            self.save_all(records)
        return records

    def save_all(self, records: Sequence[QuoteRecord]) -> None:
        self._store.set(self._key, json.dumps([record.to_dict() for record in records], ensure_ascii=False))


class KeyValueConflictPersistence(ConflictPersistencePort):
    def __init__(self, store: KeyValueStorePort, key: str = CONFLICTS_KEY) -> None:
        self._store = store
        self._key = key

    def load(self) -> list[ConflictEntry]:
        try:
            return [ConflictEntry.from_dict(item) for item in _load_list(self._store, self._key)]
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Conflicto inválido en '{self._key}': {exc}") from exc

    def save_all(self, entries: Sequence[ConflictEntry]) -> None:
        self._store.set(self._key, json.dumps([entry.to_dict() for entry in entries], ensure_ascii=False))
