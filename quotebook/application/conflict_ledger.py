from __future__ import annotations

import logging
import threading
from typing import Iterable

from quotebook.application.record_store import RecordStore
from quotebook.core.errors import ConflictIndexError
from quotebook.domain.models import ConflictChoice, ConflictEntry, NotificationKind
from quotebook.domain.ports import ConflictPersistencePort, NotificationSinkPort

logger = logging.getLogger(__name__)


class ConflictLedger:
    """Conflictos pendientes de resolución manual.

    Es una lista ordenada en la que sólo se añade; las entradas salen
    únicamente al resolverse. No se deduplica por id: si varias pasadas de
    sync detectan el mismo conflicto, cada detección exige su propia
    resolución.
    """

    def __init__(
        self,
        store: RecordStore,
        persistence: ConflictPersistencePort,
        notifier: NotificationSinkPort | None = None,
    ) -> None:
        self._store = store
        self._persistence = persistence
        self._notifier = notifier
        self._lock = threading.RLock()
        self._entries: tuple[ConflictEntry, ...] = tuple(persistence.load())

    def pending(self) -> tuple[ConflictEntry, ...]:
        return self._entries

    def count(self) -> int:
        return len(self._entries)

    def record_conflicts(self, entries: Iterable[ConflictEntry]) -> int:
        new_entries = tuple(entries)
        if not new_entries:
            return 0
        with self._lock:
            updated = self._entries + new_entries
            self._persistence.save_all(updated)
            self._entries = updated
        logger.info("Registrados %s conflicto(s); pendientes=%s", len(new_entries), len(updated))
        return len(new_entries)

    def resolve(self, index: int, choice: ConflictChoice | str) -> ConflictEntry:
        resolved_choice = ConflictChoice(choice)
        with self._lock:
            if index < 0 or index >= len(self._entries):
                raise ConflictIndexError(index, len(self._entries))
            entry = self._entries[index]
            if resolved_choice is ConflictChoice.KEEP_LOCAL:
                restored = entry.local_version.touched_as_local()
                existed = self._store.upsert(restored)
                if not existed:
                    logger.info("Registro %s reinsertado al conservar la versión local", entry.id)
            else:
                self._store.persist()
            remaining = self._entries[:index] + self._entries[index + 1 :]
            self._persistence.save_all(remaining)
            self._entries = remaining
        logger.info("Conflicto %s resuelto con %s", entry.id, resolved_choice.value)
        if self._notifier is not None:
            self._notifier.notify(
                NotificationKind.CONFLICT_RESOLVED,
                f"Conflicto en '{entry.id}' resuelto ({resolved_choice.value}).",
            )
        return entry
