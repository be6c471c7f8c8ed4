from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Callable, TypeVar

import gspread
from google.auth.exceptions import DefaultCredentialsError

from quotebook.domain.ports import SheetsClientPort
from quotebook.infrastructure.sheets_errors import SheetsRateLimitError, map_gspread_exception
from quotebook.infrastructure.sheets_rows import normalize_cell, normalize_headers

logger = logging.getLogger(__name__)

_MAX_RETRIES = 5
_BASE_BACKOFF_SECONDS = 1

T = TypeVar("T")


def backoff_seconds(attempt: int, base_seconds: int = _BASE_BACKOFF_SECONDS) -> int:
    return base_seconds * (2 ** (attempt - 1))


class SheetsClient(SheetsClientPort):
    """Acceso a Google Sheets con reintento ante límites de cuota."""

    def __init__(self, *, sleeper: Callable[[float], None] = time.sleep) -> None:
        self._spreadsheet: gspread.Spreadsheet | None = None
        self._worksheet_cache: dict[str, gspread.Worksheet] = {}
        self._sleeper = sleeper
        self._read_calls_count = 0
        self._write_calls_count = 0

    def open_spreadsheet(self, credentials_path: Path, spreadsheet_id: str) -> gspread.Spreadsheet:
        if self._spreadsheet is not None and self._spreadsheet.id == spreadsheet_id:
            return self._spreadsheet
        logger.info("Conectando a Google Sheets con credenciales: %s", Path(credentials_path).name)
        try:
            client = gspread.service_account(filename=str(credentials_path))
            spreadsheet = self._with_rate_limit_retry(
                "open_spreadsheet",
                lambda: client.open_by_key(spreadsheet_id),
            )
        except (
            gspread.exceptions.GSpreadException,
            FileNotFoundError,
            json.JSONDecodeError,
            DefaultCredentialsError,
            OSError,
        ) as exc:
            raise map_gspread_exception(exc) from exc
        self._spreadsheet = spreadsheet
        self._worksheet_cache = {}
        return spreadsheet

    def get_worksheet(self, name: str) -> gspread.Worksheet:
        if name in self._worksheet_cache:
            return self._worksheet_cache[name]
        if self._spreadsheet is None:
            raise RuntimeError("Spreadsheet no inicializado. Llama a open_spreadsheet primero.")
        spreadsheet = self._spreadsheet
        try:
            worksheet = self._with_rate_limit_retry(f"spreadsheet.worksheet({name})", lambda: spreadsheet.worksheet(name))
        except gspread.exceptions.WorksheetNotFound:
            logger.info("Creando hoja '%s'", name)
            worksheet = self._with_rate_limit_retry(
                f"spreadsheet.add_worksheet({name})",
                lambda: spreadsheet.add_worksheet(title=name, rows=200, cols=10),
            )
        self._worksheet_cache[name] = worksheet
        return worksheet

    def read_all_values(self, worksheet_name: str) -> list[list[str]]:
        worksheet = self.get_worksheet(worksheet_name)
        values = self._with_rate_limit_retry(f"worksheet.get_all_values({worksheet_name})", worksheet.get_all_values)
        self._read_calls_count += 1
        return values

    def ensure_headers(self, worksheet_name: str, headers: list[str]) -> list[str]:
        """Añade las columnas que falten y devuelve la cabecera normalizada."""
        worksheet = self.get_worksheet(worksheet_name)
        existing = self._with_rate_limit_retry(f"worksheet.row_values({worksheet_name})", lambda: worksheet.row_values(1))
        present = set(normalize_headers(existing))
        missing = [header for header in headers if normalize_cell(header).lower() not in present]
        if not missing:
            return normalize_headers(existing)
        updated = list(existing) + missing
        self._with_rate_limit_retry(f"worksheet.update({worksheet_name})", lambda: worksheet.update(range_name="1:1", values=[updated]))
        self._write_calls_count += 1
        logger.info("Cabecera actualizada en '%s' (añadidas %s columnas)", worksheet_name, len(missing))
        return normalize_headers(updated)

    def append_rows(self, worksheet_name: str, rows: list[list[str]]) -> None:
        if not rows:
            return
        worksheet = self.get_worksheet(worksheet_name)
        self._with_rate_limit_retry(
            f"worksheet.append_rows({worksheet_name})",
            lambda: worksheet.append_rows(rows, value_input_option="RAW"),
        )
        self._write_calls_count += 1

    def update_row(self, worksheet_name: str, row_number: int, values: list[str]) -> None:
        worksheet = self.get_worksheet(worksheet_name)
        self._with_rate_limit_retry(
            f"worksheet.update({worksheet_name}!{row_number})",
            lambda: worksheet.update(range_name=f"A{row_number}", values=[values], value_input_option="RAW"),
        )
        self._write_calls_count += 1

    def get_read_calls_count(self) -> int:
        return self._read_calls_count

    def get_write_calls_count(self) -> int:
        return self._write_calls_count

    def _with_rate_limit_retry(self, operation_name: str, operation: Callable[[], T]) -> T:
        for attempt in range(1, _MAX_RETRIES + 1):
            try:
                return operation()
            except gspread.exceptions.APIError as exc:
                mapped_error = map_gspread_exception(exc)
                if not isinstance(mapped_error, SheetsRateLimitError):
                    raise mapped_error from exc
                if attempt >= _MAX_RETRIES:
                    logger.error("Google Sheets rate limit persistente en %s tras %s intentos.", operation_name, attempt)
                    raise mapped_error from exc
                wait_seconds = backoff_seconds(attempt)
                logger.warning(
                    "Rate limit en Google Sheets (%s). intento=%s/%s backoff=%ss",
                    operation_name,
                    attempt,
                    _MAX_RETRIES,
                    wait_seconds,
                )
                self._sleeper(wait_seconds)
        raise RuntimeError("No se pudo completar la operación de Google Sheets.")

