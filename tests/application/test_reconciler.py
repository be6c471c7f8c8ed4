from __future__ import annotations

from quotebook.application.reconciler import merge
from quotebook.domain.models import Origin


def test_shared_id_with_different_text_keeps_remote_and_records_conflict(record) -> None:
    local = [record("L1", text="A", category="X", origin=Origin.LOCAL)]
    remote = [record("L1", text="B", category="X", origin=Origin.REMOTE)]

    result = merge(remote, local)

    assert [(r.id, r.text, r.category, r.origin) for r in result.records] == [("L1", "B", "X", Origin.REMOTE)]
    assert len(result.conflicts) == 1
    conflict = result.conflicts[0]
    assert conflict.id == "L1"
    assert (conflict.local_version.text, conflict.local_version.category) == ("A", "X")
    assert (conflict.remote_version.text, conflict.remote_version.category) == ("B", "X")
    assert result.updated == 1


def test_local_only_record_survives_empty_snapshot(record) -> None:
    local = [record("L2", text="C", category="Y", origin=Origin.LOCAL)]

    result = merge([], local)

    assert list(result.records) == local
    assert result.conflicts == ()
    assert result.records[0].origin is Origin.LOCAL
    assert result.retained_local == 1


def test_remote_only_records_are_appended_with_remote_origin(record) -> None:
    local = [record("L1", text="A")]
    remote = [record("R2", text="B", origin=Origin.LOCAL), record("R1", text="C", origin=Origin.REMOTE)]

    result = merge(remote, local)

    assert [r.id for r in result.records] == ["L1", "R2", "R1"]
    assert all(r.origin is Origin.REMOTE for r in result.records[1:])
    assert result.inserted == 2


def test_identical_shared_record_produces_no_conflict(record) -> None:
    shared = record("R1", text="same", category="Z", origin=Origin.REMOTE)

    result = merge([shared], [shared])

    assert result.conflicts == ()
    assert result.unchanged == 1
    assert list(result.records) == [shared]


def test_category_difference_is_a_conflict(record) -> None:
    result = merge([record("R1", category="Nueva")], [record("R1", category="Vieja")])

    assert len(result.conflicts) == 1
    assert result.records[0].category == "Nueva"


def test_only_origin_difference_is_not_a_conflict(record) -> None:
    local = [record("R1", text="T", origin=Origin.LOCAL)]
    remote = [record("R1", text="T", origin=Origin.REMOTE)]

    result = merge(remote, local)

    assert result.conflicts == ()
    assert result.records[0].origin is Origin.REMOTE


def test_merge_is_idempotent(record) -> None:
    local = [
        record("L1", text="A"),
        record("L2", text="solo local"),
        record("R5", text="viejo", origin=Origin.REMOTE),
    ]
    snapshot = [record("L1", text="B"), record("R5", text="nuevo"), record("R9", text="nuevo remoto")]

    first = merge(snapshot, local)
    second = merge(snapshot, first.records)

    assert second.records == first.records
    assert second.conflicts == ()


def test_merge_does_not_mutate_inputs(record) -> None:
    local = [record("L1", text="A"), record("L2")]
    snapshot = [record("L1", text="B"), record("R1")]
    local_before = list(local)
    snapshot_before = list(snapshot)

    merge(snapshot, local)

    assert local == local_before
    assert snapshot == snapshot_before


def test_merge_is_deterministic(record) -> None:
    local = [record("L1", text="A"), record("L2")]
    snapshot = [record("L1", text="B"), record("R1")]
    fixed_clock = lambda: "2025-05-05T00:00:00+00:00"  # noqa: E731

    assert merge(snapshot, local, clock=fixed_clock) == merge(snapshot, local, clock=fixed_clock)


def test_duplicate_ids_inside_one_input_keep_last_version_without_conflict(record) -> None:
    snapshot = [record("R1", text="primera"), record("R1", text="segunda")]

    result = merge(snapshot, [])

    assert [(r.id, r.text) for r in result.records] == [("R1", "segunda")]
    assert result.conflicts == ()


def test_merge_never_produces_duplicate_ids(record) -> None:
    local = [record("A"), record("B"), record("A", text="dup")]
    snapshot = [record("B", text="x"), record("C"), record("C")]

    result = merge(snapshot, local)

    ids = [r.id for r in result.records]
    assert sorted(ids) == ["A", "B", "C"]


def test_conflict_snapshot_is_independent_from_later_changes(record) -> None:
    local = [record("L1", text="A")]
    result = merge([record("L1", text="B")], local)

    local.clear()

    assert result.conflicts[0].local_version.text == "A"
