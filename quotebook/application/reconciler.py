from __future__ import annotations

import logging
from typing import Callable, Iterable, Sequence

from quotebook.domain.models import ConflictEntry, Origin, QuoteRecord, utc_now_iso
from quotebook.domain.sync_models import MergeResult

logger = logging.getLogger(__name__)


def index_by_id(records: Iterable[QuoteRecord], *, source: str) -> dict[str, QuoteRecord]:
    """Indexa por id conservando la posición de la primera aparición.

    Si un id se repite dentro de la misma entrada gana la última versión; se
    trata como un defecto de calidad de datos, no como conflicto.
    """
    indexed: dict[str, QuoteRecord] = {}
    for record in records:
        if record.id in indexed:
            logger.warning("Id duplicado en %s: %s (se conserva la última versión)", source, record.id)
        indexed[record.id] = record
    return indexed


def merge(
    remote_snapshot: Sequence[QuoteRecord],
    local_collection: Sequence[QuoteRecord],
    *,
    clock: Callable[[], str] = utc_now_iso,
) -> MergeResult:
    """Combina una instantánea remota con la colección local.

    Reglas:

    * Un id presente en ambos lados queda siempre con la versión remota
      (``origin=remote``). Si ``text`` o ``category`` difieren se emite además
      un :class:`ConflictEntry` con las dos versiones, sólo como aviso para una
      resolución manual posterior.
    * Los ids sólo remotos se añaden al final, en el orden de la instantánea.
    * Los ids sólo locales se conservan sin cambios y en su posición.

    La función es pura: no modifica sus entradas y, con las mismas entradas,
    produce siempre el mismo resultado. Aplicar dos veces la misma instantánea
    deja la colección igual que aplicarla una vez.
    """
    remote_by_id = index_by_id(remote_snapshot, source="remoto")
    local_by_id = index_by_id(local_collection, source="local")

    detected_at = clock() if remote_by_id else ""
    merged: list[QuoteRecord] = []
    conflicts: list[ConflictEntry] = []
    updated = unchanged = retained_local = 0

    for record_id, local in local_by_id.items():
        remote = remote_by_id.get(record_id)
        if remote is None:
            merged.append(local)
            retained_local += 1
            continue
        remote_version = remote.with_origin(Origin.REMOTE)
        if local.content_differs(remote_version):
            conflicts.append(
                ConflictEntry(
                    id=record_id,
                    local_version=local,
                    remote_version=remote_version,
                    detected_at=detected_at,
                )
            )
        if remote_version == local:
            unchanged += 1
        else:
            updated += 1
        merged.append(remote_version)

    inserted = 0
    for record_id, remote in remote_by_id.items():
        if record_id in local_by_id:
            continue
        merged.append(remote.with_origin(Origin.REMOTE))
        inserted += 1

    if conflicts:
        logger.info("Merge con %s conflicto(s): %s", len(conflicts), [entry.id for entry in conflicts])
    return MergeResult(
        records=tuple(merged),
        conflicts=tuple(conflicts),
        inserted=inserted,
        updated=updated,
        unchanged=unchanged,
        retained_local=retained_local,
    )
