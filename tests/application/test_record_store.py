from __future__ import annotations

import json

import pytest

from quotebook.application.record_store import RecordStore
from quotebook.core.errors import PersistenceError
from quotebook.domain.models import Origin
from quotebook.infrastructure.kv_persistence import QUOTES_KEY, KeyValueRecordPersistence


class _FailingPersistence:
    def __init__(self) -> None:
        self.fail = False
        self.saved = []

    def load(self):
        return []

    def save_all(self, records) -> None:
        if self.fail:
            raise PersistenceError("disco lleno")
        self.saved = list(records)


def test_replace_all_persists_and_publishes(record, record_store, kv_store) -> None:
    record_store.replace_all([record("A"), record("B")])

    assert [r.id for r in record_store.all()] == ["A", "B"]
    assert [item["id"] for item in json.loads(kv_store.get(QUOTES_KEY))] == ["A", "B"]


def test_replace_all_rejects_duplicate_ids(record, record_store) -> None:
    with pytest.raises(ValueError):
        record_store.replace_all([record("A"), record("A")])

    assert record_store.all() == ()


def test_upsert_replaces_in_place_or_appends(record, record_store) -> None:
    record_store.replace_all([record("A"), record("B")])

    assert record_store.upsert(record("A", text="nuevo")) is True
    assert record_store.upsert(record("C")) is False

    assert [(r.id, r.text) for r in record_store.all()] == [("A", "nuevo"), ("B", "texto"), ("C", "texto")]


def test_extend_skips_known_ids(record, record_store) -> None:
    record_store.replace_all([record("A")])

    added = record_store.extend([record("A", text="otro"), record("B")])

    assert added == 1
    assert record_store.get("A").text == "texto"


def test_replace_id_keeps_position_and_drops_collisions(record, record_store) -> None:
    record_store.replace_all([record("L1"), record("X"), record("R1", origin=Origin.REMOTE)])

    assert record_store.replace_id("L1", record("R1", text="subida", origin=Origin.REMOTE)) is True

    assert [(r.id, r.text) for r in record_store.all()] == [("R1", "subida"), ("X", "texto")]
    assert record_store.replace_id("no-existe", record("R2")) is False


def test_remove_and_local_records(record, record_store) -> None:
    record_store.replace_all([record("L1"), record("R1", origin=Origin.REMOTE)])

    assert [r.id for r in record_store.local_records()] == ["L1"]
    assert record_store.remove("L1") is True
    assert record_store.remove("L1") is False
    assert len(record_store) == 1


def test_failed_persistence_leaves_memory_unchanged(record) -> None:
    persistence = _FailingPersistence()
    store = RecordStore(persistence)
    store.replace_all([record("A")])
    persistence.fail = True

    with pytest.raises(PersistenceError):
        store.upsert(record("B"))

    assert [r.id for r in store.all()] == ["A"]


def test_reload_reads_persisted_collection(record, kv_store) -> None:
    RecordStore(KeyValueRecordPersistence(kv_store)).replace_all([record("A"), record("B", origin=Origin.REMOTE)])

    reopened = RecordStore(KeyValueRecordPersistence(kv_store))

    assert [(r.id, r.origin) for r in reopened.all()] == [("A", Origin.LOCAL), ("B", Origin.REMOTE)]


def test_reload_collapses_duplicate_ids_keeping_last(kv_store) -> None:
    kv_store.set(
        QUOTES_KEY,
        json.dumps(
            [
                {"id": "A", "text": "uno", "category": "X", "updated_at": "t", "origin": "local"},
                {"id": "A", "text": "dos", "category": "X", "updated_at": "t", "origin": "local"},
            ]
        ),
    )

    store = RecordStore(KeyValueRecordPersistence(kv_store))

    assert [(r.id, r.text) for r in store.all()] == [("A", "dos")]
