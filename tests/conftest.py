from __future__ import annotations

import sqlite3
import sys
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from quotebook.application.conflict_ledger import ConflictLedger
from quotebook.application.quote_use_cases import QuoteUseCases
from quotebook.application.record_store import RecordStore
from quotebook.application.sync_orchestrator import SyncOrchestrator
from quotebook.core.errors import TransportError
from quotebook.core.metrics import metrics_registry
from quotebook.domain.models import Origin, QuoteRecord
from quotebook.infrastructure.kv_persistence import KeyValueConflictPersistence, KeyValueRecordPersistence
from quotebook.infrastructure.kv_store_sqlite import SQLiteKeyValueStore
from quotebook.infrastructure.migrations import run_migrations
from quotebook.infrastructure.notification_sinks import RecordingNotificationSink


class FakeRemoteGateway:
    """Fuente remota en memoria, sin red ni gspread."""

    def __init__(self, records: list[QuoteRecord] | None = None) -> None:
        self.records: list[QuoteRecord] = list(records or [])
        self.fetch_error: Exception | None = None
        self.failing_submit_ids: set[str] = set()
        self.assigned_ids: list[str] = []
        self.submitted: list[str] = []
        self.fetch_calls = 0
        self.on_fetch: Callable[[], None] | None = None
        self._sequence = 0

    def fetch_remote(self) -> list[QuoteRecord]:
        self.fetch_calls += 1
        if self.on_fetch is not None:
            self.on_fetch()
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.records)

    def submit(self, record: QuoteRecord) -> QuoteRecord:
        self.submitted.append(record.id)
        if record.id in self.failing_submit_ids:
            raise TransportError(f"submit rechazado para {record.id}")
        if self.assigned_ids:
            remote_id = self.assigned_ids.pop(0)
        else:
            self._sequence += 1
            remote_id = f"R{self._sequence}"
        confirmed = QuoteRecord(
            id=remote_id,
            text=record.text,
            category=record.category,
            updated_at=record.updated_at,
            origin=Origin.REMOTE,
        )
        self.records.append(confirmed)
        return confirmed


def make_record(
    record_id: str,
    text: str = "texto",
    category: str = "General",
    origin: Origin = Origin.LOCAL,
    updated_at: str = "2025-01-01T00:00:00+00:00",
) -> QuoteRecord:
    return QuoteRecord(id=record_id, text=text, category=category, updated_at=updated_at, origin=origin)


@pytest.fixture(autouse=True)
def _reset_metrics() -> None:
    metrics_registry.reset()


@pytest.fixture
def record() -> Callable[..., QuoteRecord]:
    return make_record


@pytest.fixture
def connection() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    run_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def kv_store(connection: sqlite3.Connection) -> SQLiteKeyValueStore:
    return SQLiteKeyValueStore(connection)


@pytest.fixture
def record_store(kv_store: SQLiteKeyValueStore) -> RecordStore:
    return RecordStore(KeyValueRecordPersistence(kv_store))


@pytest.fixture
def notifier() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def ledger(
    record_store: RecordStore, kv_store: SQLiteKeyValueStore, notifier: RecordingNotificationSink
) -> ConflictLedger:
    return ConflictLedger(record_store, KeyValueConflictPersistence(kv_store), notifier)


@pytest.fixture
def fake_gateway() -> FakeRemoteGateway:
    return FakeRemoteGateway()


@pytest.fixture
def orchestrator(
    record_store: RecordStore,
    ledger: ConflictLedger,
    fake_gateway: FakeRemoteGateway,
    notifier: RecordingNotificationSink,
) -> SyncOrchestrator:
    return SyncOrchestrator(record_store, ledger, fake_gateway, notifier)


@pytest.fixture
def quote_use_cases(record_store: RecordStore, kv_store: SQLiteKeyValueStore) -> QuoteUseCases:
    return QuoteUseCases(record_store, kv_store)
