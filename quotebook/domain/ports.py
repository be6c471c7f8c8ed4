from __future__ import annotations

from typing import Iterable, Protocol, Sequence

from quotebook.domain.models import ConflictEntry, NotificationKind, QuoteRecord, SheetsConfig


class KeyValueStorePort(Protocol):
    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class RecordPersistencePort(Protocol):
    def load(self) -> list[QuoteRecord]:
        ...

    def save_all(self, records: Sequence[QuoteRecord]) -> None:
        ...


class RemoteGatewayPort(Protocol):
    def fetch_remote(self) -> list[QuoteRecord]:
        ...

    def submit(self, record: QuoteRecord) -> QuoteRecord:
        ...


class NotificationSinkPort(Protocol):
    def notify(self, kind: NotificationKind, message: str, actions: Iterable[str] = ()) -> None:
        ...


class SheetsConfigStorePort(Protocol):
    def load(self) -> SheetsConfig | None:
        ...

    def save(self, config: SheetsConfig) -> SheetsConfig:
        ...


class SheetsClientPort(Protocol):
    def open_spreadsheet(self, credentials_path, spreadsheet_id: str):
        ...

    def read_all_values(self, worksheet_name: str) -> list[list[str]]:
        ...

    def append_rows(self, worksheet_name: str, rows: list[list[str]]) -> None:
        ...

    def update_row(self, worksheet_name: str, row_number: int, values: list[str]) -> None:
        ...

    def ensure_headers(self, worksheet_name: str, headers: list[str]) -> list[str]:
        ...


class ConflictPersistencePort(Protocol):
    def load(self) -> list[ConflictEntry]:
        ...

    def save_all(self, entries: Sequence[ConflictEntry]) -> None:
        ...
