from __future__ import annotations

import logging
import threading
from typing import Iterable, Sequence

from quotebook.domain.models import Origin, QuoteRecord
from quotebook.domain.ports import RecordPersistencePort

logger = logging.getLogger(__name__)


class RecordStore:
    """Colección ordenada de citas, única fuente de verdad en memoria.

    Cada mutación calcula una tupla nueva, la persiste completa y sólo
    entonces la publica; los lectores ven el estado anterior o el posterior,
    nunca uno intermedio. Si la persistencia falla la memoria no cambia.
    """

    def __init__(self, persistence: RecordPersistencePort) -> None:
        self._persistence = persistence
        self._lock = threading.RLock()
        self._records: tuple[QuoteRecord, ...] = ()
        self.reload()

    def reload(self) -> None:
        loaded = tuple(self._persistence.load())
        with self._lock:
            self._records = _deduplicated(loaded)

    def all(self) -> tuple[QuoteRecord, ...]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def get(self, record_id: str) -> QuoteRecord | None:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def local_records(self) -> tuple[QuoteRecord, ...]:
        return tuple(record for record in self._records if record.origin is Origin.LOCAL)

    def replace_all(self, records: Sequence[QuoteRecord]) -> None:
        candidate = tuple(records)
        ids = [record.id for record in candidate]
        if len(ids) != len(set(ids)):
            raise ValueError("La colección contiene ids duplicados.")
        with self._lock:
            self._commit(candidate)

    def upsert(self, record: QuoteRecord) -> bool:
        """Sustituye el registro con el mismo id o lo añade al final.

        Devuelve ``True`` si ya existía.
        """
        with self._lock:
            current = list(self._records)
            for position, existing in enumerate(current):
                if existing.id == record.id:
                    current[position] = record
                    self._commit(tuple(current))
                    return True
            current.append(record)
            self._commit(tuple(current))
            return False

    def extend(self, records: Iterable[QuoteRecord]) -> int:
        with self._lock:
            known = {record.id for record in self._records}
            added = [record for record in records if record.id not in known]
            if not added:
                return 0
            self._commit(self._records + tuple(added))
            return len(added)

    def replace_id(self, old_id: str, record: QuoteRecord) -> bool:
        """Reescribe en su sitio el registro ``old_id`` con ``record``.

        Si otro registro ya ocupaba ``record.id`` se descarta para mantener los
        ids únicos. Devuelve ``False`` si ``old_id`` ya no existe.
        """
        with self._lock:
            if not any(existing.id == old_id for existing in self._records):
                return False
            rewritten: list[QuoteRecord] = []
            for existing in self._records:
                if existing.id == old_id:
                    rewritten.append(record)
                elif existing.id == record.id:
                    logger.warning("Registro %s sustituido por la reescritura de %s", existing.id, old_id)
                else:
                    rewritten.append(existing)
            self._commit(tuple(rewritten))
            return True

    def remove(self, record_id: str) -> bool:
        with self._lock:
            remaining = tuple(record for record in self._records if record.id != record_id)
            if len(remaining) == len(self._records):
                return False
            self._commit(remaining)
            return True

    def persist(self) -> None:
        with self._lock:
            self._persistence.save_all(self._records)

    def _commit(self, records: tuple[QuoteRecord, ...]) -> None:
        self._persistence.save_all(records)
        self._records = records


def _deduplicated(records: tuple[QuoteRecord, ...]) -> tuple[QuoteRecord, ...]:
    by_id: dict[str, QuoteRecord] = {}
    for record in records:
        if record.id in by_id:
            logger.warning("Id duplicado en el almacenamiento local: %s", record.id)
        by_id[record.id] = record
    return tuple(by_id.values())
