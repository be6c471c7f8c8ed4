from __future__ import annotations

from datetime import datetime, timezone
import logging
import threading
import time
from typing import Callable

from quotebook.application.conflict_ledger import ConflictLedger
from quotebook.application.reconciler import merge
from quotebook.application.record_store import RecordStore
from quotebook.core import metrics
from quotebook.core.errors import MalformedPayloadError, TransportError
from quotebook.core.observability import OperationContext, log_event, log_operational_error
from quotebook.domain.models import NotificationKind, Origin
from quotebook.domain.ports import NotificationSinkPort, RemoteGatewayPort
from quotebook.domain.sync_models import CycleReport, MergeResult, SyncState

logger = logging.getLogger(__name__)

RESOLVE_CONFLICTS_ACTION = "resolve-conflicts"


class SyncOrchestrator:
    """Ejecuta ciclos fetch → merge → replicación sobre el store local.

    Sólo puede haber un ciclo en curso. Un disparo que llega con otro ciclo
    en marcha se descarta (no se encola) y ``run_cycle`` devuelve ``None``;
    el siguiente disparo manual o del temporizador hará la sincronización.
    """

    def __init__(
        self,
        store: RecordStore,
        ledger: ConflictLedger,
        gateway: RemoteGatewayPort,
        notifier: NotificationSinkPort,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._gateway = gateway
        self._notifier = notifier
        self._clock = clock
        self._guard = threading.Lock()
        self._state = SyncState.IDLE

    @property
    def state(self) -> SyncState:
        return self._state

    def run_cycle(self) -> CycleReport | None:
        if not self._guard.acquire(blocking=False):
            logger.info("Ciclo de sync descartado: ya hay uno en curso (estado=%s)", self._state.value)
            metrics.metrics_registry.increment(metrics.SYNC_CYCLES_SKIPPED)
            return None
        try:
            with OperationContext("sync_cycle") as operation:
                return self._run_locked(operation.correlation_id)
        finally:
            self._state = SyncState.IDLE
            self._guard.release()

    def _run_locked(self, cycle_id: str) -> CycleReport:
        started_at = _now_iso()
        started = self._clock()
        metrics.metrics_registry.increment(metrics.SYNC_CYCLES)
        self._log("sync_started", local_records=len(self._store))

        self._state = SyncState.FETCHING
        try:
            snapshot = self._gateway.fetch_remote()
        except (TransportError, MalformedPayloadError) as exc:
            return self._abort_fetch(exc, cycle_id, started_at, started)

        self._state = SyncState.MERGING
        result = merge(snapshot, self._store.all())
        self._store.replace_all(result.records)
        self._publish_merge_outcome(result)

        self._state = SyncState.REPLICATING
        replicated_ids, failures = self._replicate_local_records()

        duration_ms = int((self._clock() - started) * 1000)
        metrics.metrics_registry.record_timing(metrics.SYNC_CYCLE_DURATION, duration_ms)
        report = CycleReport(
            cycle_id=cycle_id,
            started_at=started_at,
            finished_at=_now_iso(),
            status="CONFLICTS" if result.has_conflicts else "OK",
            fetched=len(snapshot),
            inserted=result.inserted,
            updated=result.updated,
            conflicts=len(result.conflicts),
            replicated=len(replicated_ids),
            replication_failures=failures,
            replicated_ids=replicated_ids,
            duration_ms=duration_ms,
        )
        self._log("sync_finished", report=report.to_dict())
        return report

    def _abort_fetch(
        self, exc: Exception, cycle_id: str, started_at: str, started: float
    ) -> CycleReport:
        metrics.metrics_registry.increment(metrics.SYNC_FETCH_ERRORS)
        log_operational_error("Fallo al obtener la instantánea remota", exc=exc, extra={"cycle_id": cycle_id})
        self._state = SyncState.IDLE
        self._notifier.notify(NotificationKind.SYNC_ERROR, f"No se pudo sincronizar: {exc}")
        return CycleReport(
            cycle_id=cycle_id,
            started_at=started_at,
            finished_at=_now_iso(),
            status="ERROR",
            error=str(exc),
            duration_ms=int((self._clock() - started) * 1000),
        )

    def _publish_merge_outcome(self, result: MergeResult) -> None:
        if result.has_conflicts:
            self._ledger.record_conflicts(result.conflicts)
            metrics.metrics_registry.increment(metrics.SYNC_CONFLICTS, len(result.conflicts))
            self._notifier.notify(
                NotificationKind.CONFLICTS_DETECTED,
                f"{len(result.conflicts)} conflicto(s) detectado(s); se aplicó la versión remota.",
                (RESOLVE_CONFLICTS_ACTION,),
            )
            return
        self._notifier.notify(
            NotificationKind.SYNC_COMPLETE,
            f"Sincronización completada: {result.inserted} nueva(s), {result.updated} actualizada(s).",
        )

    def _replicate_local_records(self) -> tuple[dict[str, str], int]:
        replicated: dict[str, str] = {}
        failures = 0
        for record in self._store.local_records():
            try:
                confirmed = self._gateway.submit(record)
            except (TransportError, MalformedPayloadError) as exc:
                failures += 1
                metrics.metrics_registry.increment(metrics.SYNC_REPLICATION_FAILURES)
                logger.warning("No se pudo subir %s; se reintentará en el próximo ciclo: %s", record.id, exc)
                continue
            if not self._store.replace_id(record.id, confirmed.with_origin(Origin.REMOTE)):
                logger.warning("Registro %s eliminado durante la subida; se ignora %s", record.id, confirmed.id)
                continue
            replicated[record.id] = confirmed.id
            metrics.metrics_registry.increment(metrics.SYNC_REPLICATED)
        return replicated, failures

    def _log(self, event: str, **payload: object) -> None:
        log_event(logger, event, dict(payload))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
