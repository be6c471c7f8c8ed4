from __future__ import annotations

from dataclasses import dataclass
import sqlite3
from typing import Callable

from quotebook.application.conflict_ledger import ConflictLedger
from quotebook.application.quote_use_cases import QuoteUseCases
from quotebook.application.record_store import RecordStore
from quotebook.application.sync_orchestrator import SyncOrchestrator
from quotebook.bootstrap.settings import resolve_sync_interval
from quotebook.domain.ports import NotificationSinkPort, RemoteGatewayPort, SheetsConfigStorePort
from quotebook.infrastructure.db import connect
from quotebook.infrastructure.kv_persistence import KeyValueConflictPersistence, KeyValueRecordPersistence
from quotebook.infrastructure.kv_store_sqlite import SQLiteKeyValueStore
from quotebook.infrastructure.local_config import SheetsConfigStore
from quotebook.infrastructure.migrations import run_migrations
from quotebook.infrastructure.notification_sinks import LoggingNotificationSink
from quotebook.infrastructure.scheduler import IntervalScheduler
from quotebook.infrastructure.sheets_client import SheetsClient
from quotebook.infrastructure.sheets_gateway_gspread import SheetsRemoteGateway


@dataclass
class AppContainer:
    """Estado propio del motor de reconciliación y sus colaboradores.

    El store y el ledger viven aquí y se pasan por referencia a quien los
    necesita; no hay colecciones globales de módulo.
    """

    connection: sqlite3.Connection
    config_store: SheetsConfigStorePort
    store: RecordStore
    ledger: ConflictLedger
    quotes: QuoteUseCases
    orchestrator: SyncOrchestrator
    notifier: NotificationSinkPort

    def build_scheduler(self, period_seconds: float | None = None) -> IntervalScheduler:
        config = self.config_store.load()
        configured = config.sync_interval_seconds if config is not None else None
        if period_seconds is not None:
            configured = period_seconds
        return IntervalScheduler(self.orchestrator.run_cycle, resolve_sync_interval(configured))

    def close(self) -> None:
        self.connection.close()


ConnectionFactory = Callable[[], sqlite3.Connection]


def build_container(
    connection_factory: ConnectionFactory = connect,
    *,
    notifier: NotificationSinkPort | None = None,
    gateway: RemoteGatewayPort | None = None,
    config_store: SheetsConfigStorePort | None = None,
    seed: bool = True,
) -> AppContainer:
    connection = connection_factory()
    run_migrations(connection)

    kv_store = SQLiteKeyValueStore(connection)
    resolved_notifier = notifier or LoggingNotificationSink()
    resolved_config_store = config_store or SheetsConfigStore()

    store = RecordStore(KeyValueRecordPersistence(kv_store))
    ledger = ConflictLedger(store, KeyValueConflictPersistence(kv_store), resolved_notifier)
    quotes = QuoteUseCases(store, kv_store)
    if seed:
        quotes.seed_if_empty()

    resolved_gateway = gateway or SheetsRemoteGateway(resolved_config_store, SheetsClient())
    orchestrator = SyncOrchestrator(store, ledger, resolved_gateway, resolved_notifier)

    return AppContainer(
        connection=connection,
        config_store=resolved_config_store,
        store=store,
        ledger=ledger,
        quotes=quotes,
        orchestrator=orchestrator,
        notifier=resolved_notifier,
    )
