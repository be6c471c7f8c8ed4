from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from quotebook.bootstrap.settings import resolve_data_dir
from quotebook.core.errors import PersistenceError

logger = logging.getLogger(__name__)

DB_FILENAME = "quotebook.db"
DEFAULT_BUSY_TIMEOUT_MS = 30000
_BASE_PRAGMAS = ("journal_mode=WAL", "synchronous=NORMAL")


def default_db_path() -> Path:
    return resolve_data_dir() / DB_FILENAME


def apply_pragmas(connection: sqlite3.Connection, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
    connection.row_factory = sqlite3.Row
    for pragma in (*_BASE_PRAGMAS, f"busy_timeout={int(busy_timeout_ms)}"):
        connection.execute(f"PRAGMA {pragma}")


def connect(db_path: Path | None = None, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> sqlite3.Connection:
    """Abre la base local compartible entre el hilo del CLI y el temporizador."""
    path = db_path or default_db_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        connection = sqlite3.connect(path, check_same_thread=False, timeout=max(1.0, busy_timeout_ms / 1000))
    except (OSError, sqlite3.Error) as exc:
        raise PersistenceError(f"No se pudo abrir la base de datos en {path}.") from exc
    try:
        apply_pragmas(connection, busy_timeout_ms=busy_timeout_ms)
    except sqlite3.Error as exc:
        connection.close()
        raise PersistenceError(f"No se pudo configurar la base de datos en {path}.") from exc
    logger.debug("Base de datos abierta: %s", path)
    return connection
