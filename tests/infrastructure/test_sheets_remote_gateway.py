from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from quotebook.core.errors import MalformedPayloadError
from quotebook.core.metrics import SHEETS_FETCH_DURATION, metrics_registry
from quotebook.domain.models import Origin, SheetsConfig
from quotebook.infrastructure.sheets_errors import SheetsConfigError, SheetsRateLimitError, SheetsUnavailableError
from quotebook.infrastructure.sheets_gateway_gspread import SheetsRemoteGateway


@dataclass
class FakeConfigStore:
    config: SheetsConfig | None

    def load(self) -> SheetsConfig | None:
        return self.config

    def save(self, config: SheetsConfig) -> SheetsConfig:
        self.config = config
        return config


class FakeSheetsClient:
    """Hoja en memoria con la misma interfaz que ``SheetsClient``."""

    def __init__(self, values: list[list[Any]] | None = None) -> None:
        self.values: list[list[Any]] = values if values is not None else []
        self.opened: list[str] = []
        self.fail_with: Exception | None = None

    def open_spreadsheet(self, credentials_path: Path, spreadsheet_id: str) -> object:
        self.opened.append(spreadsheet_id)
        return object()

    def read_all_values(self, worksheet_name: str) -> list[list[Any]]:
        if self.fail_with is not None:
            raise self.fail_with
        return [list(row) for row in self.values]

    def ensure_headers(self, worksheet_name: str, headers: list[str]) -> list[str]:
        if not self.values:
            self.values.append(list(headers))
        existing = list(self.values[0])
        present = {str(header).strip().lower() for header in existing}
        for header in headers:
            if header not in present:
                existing.append(header)
        self.values[0] = existing
        return [str(header).strip().lower() for header in existing]

    def append_rows(self, worksheet_name: str, rows: list[list[str]]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.values.extend(rows)

    def update_row(self, worksheet_name: str, row_number: int, values: list[str]) -> None:
        self.values[row_number - 1] = list(values)


def _config() -> SheetsConfig:
    return SheetsConfig(spreadsheet_id="sheet-1", credentials_path="/tmp/credentials.json", device_id="dev")


def _gateway(client: FakeSheetsClient, config: SheetsConfig | None = None) -> SheetsRemoteGateway:
    ids = iter(["R9", "R10"])
    return SheetsRemoteGateway(FakeConfigStore(config or _config()), client, id_factory=lambda: next(ids))


def test_fetch_remote_returns_complete_rows_as_remote_records() -> None:
    client = FakeSheetsClient(
        [
            ["id", "text", "category", "updated_at"],
            ["R1", "uno", "A", "2025-01-01"],
            ["R2", "", "B", ""],
            ["R3", "tres", "C", ""],
        ]
    )

    records = _gateway(client).fetch_remote()

    assert [(r.id, r.origin) for r in records] == [("R1", Origin.REMOTE), ("R3", Origin.REMOTE)]
    assert client.opened == ["sheet-1"]


def test_fetch_remote_on_empty_sheet_returns_empty_snapshot() -> None:
    assert _gateway(FakeSheetsClient([])).fetch_remote() == []


def test_fetch_remote_raises_on_missing_columns() -> None:
    client = FakeSheetsClient([["nombre"], ["x"]])

    with pytest.raises(MalformedPayloadError):
        _gateway(client).fetch_remote()


def test_fetch_remote_propagates_transport_errors() -> None:
    client = FakeSheetsClient()
    client.fail_with = SheetsRateLimitError("cuota")

    with pytest.raises(SheetsRateLimitError):
        _gateway(client).fetch_remote()


def test_unconfigured_gateway_raises_config_error() -> None:
    gateway = SheetsRemoteGateway(FakeConfigStore(None), FakeSheetsClient())

    with pytest.raises(SheetsConfigError):
        gateway.fetch_remote()


def test_submit_local_record_appends_row_with_new_remote_id(record) -> None:
    client = FakeSheetsClient()

    confirmed = _gateway(client).submit(record("local-abc", text="nueva", category="A"))

    assert confirmed.id == "R9"
    assert confirmed.origin is Origin.REMOTE
    assert client.values[0] == ["id", "text", "category", "updated_at"]
    assert client.values[1][:3] == ["R9", "nueva", "A"]


def test_submit_existing_remote_id_updates_row_in_place(record) -> None:
    client = FakeSheetsClient(
        [
            ["id", "text", "category", "updated_at"],
            ["R1", "viejo", "A", "t0"],
        ]
    )

    confirmed = _gateway(client).submit(record("R1", text="restaurado", category="A"))

    assert confirmed.id == "R1"
    assert len(client.values) == 2
    assert client.values[1][:3] == ["R1", "restaurado", "A"]


def test_submit_remote_id_missing_from_sheet_is_appended_with_new_id(record) -> None:
    client = FakeSheetsClient([["id", "text", "category", "updated_at"]])

    confirmed = _gateway(client).submit(record("R404", text="perdida"))

    assert confirmed.id == "R9"
    assert client.values[1][0] == "R9"


def test_submit_maps_client_failures(record) -> None:
    client = FakeSheetsClient()
    client.fail_with = TimeoutError("lento")

    with pytest.raises(SheetsUnavailableError):
        _gateway(client).submit(record("local-1"))


def test_gateway_calls_are_timed() -> None:
    client = FakeSheetsClient([["id", "text", "category", "updated_at"]])

    _gateway(client).fetch_remote()

    timings = metrics_registry.snapshot()["timings_ms"]
    assert timings[SHEETS_FETCH_DURATION]["count"] == 1


def test_submit_on_capitalised_headers_keeps_existing_rows(record) -> None:
    client = FakeSheetsClient([["ID", "Text", "Category"], ["R1", "hola", "X"]])
    gateway = _gateway(client)

    gateway.submit(record("local-abc", text="nueva", category="A"))

    assert client.values[0] == ["ID", "Text", "Category", "updated_at"]
    assert client.values[2][:3] == ["R9", "nueva", "A"]
    assert [r.id for r in gateway.fetch_remote()] == ["R1", "R9"]
