from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone

from quotebook.core.errors import PersistenceError
from quotebook.domain.ports import KeyValueStorePort

logger = logging.getLogger(__name__)


class SQLiteKeyValueStore(KeyValueStorePort):
    """Almacén clave/valor opaco sobre la tabla ``kv_store``."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        try:
            with self._lock:
                row = self._connection.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"No se pudo leer la clave '{key}'.") from exc
        return None if row is None else str(row[0])

    def set(self, key: str, value: str) -> None:
        try:
            with self._lock, self._connection:
                self._connection.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (key, value, datetime.now(timezone.utc).isoformat()),
                )
        except sqlite3.Error as exc:
            logger.error("Fallo escribiendo la clave %s: %s", key, exc)
            raise PersistenceError(f"No se pudo guardar la clave '{key}'.") from exc
