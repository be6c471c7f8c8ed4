from __future__ import annotations

from dataclasses import replace
import logging
from pathlib import Path
from typing import Callable
import uuid

from quotebook.core.metrics import SHEETS_FETCH_DURATION, SHEETS_SUBMIT_DURATION, measure_time
from quotebook.domain.models import Origin, QuoteRecord, SheetsConfig, is_local_id
from quotebook.domain.ports import RemoteGatewayPort, SheetsClientPort, SheetsConfigStorePort
from quotebook.infrastructure.sheets_errors import SheetsConfigError, map_gspread_exception
from quotebook.infrastructure.sheets_rows import (
    QUOTE_HEADERS,
    find_id_row,
    normalize_rows,
    record_from_payload,
    row_from_record,
)

logger = logging.getLogger(__name__)


def _new_remote_id() -> str:
    return str(uuid.uuid4())


class SheetsRemoteGateway(RemoteGatewayPort):
    """Fuente remota de citas sobre una hoja de Google Sheets.

    La hoja tiene una fila por cita con cabecera ``id,text,category,updated_at``.
    ``submit`` asigna un id remoto nuevo a los registros con id local y
    actualiza la fila existente cuando el id ya es remoto.
    """

    def __init__(
        self,
        config_store: SheetsConfigStorePort,
        client: SheetsClientPort,
        *,
        id_factory: Callable[[], str] = _new_remote_id,
    ) -> None:
        self._config_store = config_store
        self._client = client
        self._id_factory = id_factory

    @measure_time(SHEETS_FETCH_DURATION)
    def fetch_remote(self) -> list[QuoteRecord]:
        config = self._open()
        try:
            rows = normalize_rows(self._client.read_all_values(config.worksheet_name))
        except Exception as exc:  # noqa: BLE001
            raise map_gspread_exception(exc) from exc
        records: list[QuoteRecord] = []
        for row_number, payload in rows:
            record = record_from_payload(payload)
            if record is None:
                logger.warning("Fila %s incompleta en '%s'; se ignora", row_number, config.worksheet_name)
                continue
            records.append(record)
        logger.info("Instantánea remota: %s cita(s) en '%s'", len(records), config.worksheet_name)
        return records

    @measure_time(SHEETS_SUBMIT_DURATION)
    def submit(self, record: QuoteRecord) -> QuoteRecord:
        config = self._open()
        try:
            headers = self._client.ensure_headers(config.worksheet_name, QUOTE_HEADERS)
            if not is_local_id(record.id):
                row_number = find_id_row(normalize_rows(self._client.read_all_values(config.worksheet_name)), record.id)
                if row_number is not None:
                    confirmed = record.with_origin(Origin.REMOTE)
                    self._client.update_row(config.worksheet_name, row_number, row_from_record(headers, confirmed))
                    logger.info("Cita %s actualizada en la fila %s", record.id, row_number)
                    return confirmed
            confirmed = replace(record, id=self._id_factory(), origin=Origin.REMOTE)
            self._client.append_rows(config.worksheet_name, [row_from_record(headers, confirmed)])
        except Exception as exc:  # noqa: BLE001
            raise map_gspread_exception(exc) from exc
        logger.info("Cita %s subida con id remoto %s", record.id, confirmed.id)
        return confirmed

    def _open(self) -> SheetsConfig:
        config = self._config_store.load()
        if config is None or not config.spreadsheet_id:
            raise SheetsConfigError("Google Sheets no está configurado (falta spreadsheet_id).")
        try:
            self._client.open_spreadsheet(Path(config.credentials_path), config.spreadsheet_id)
        except Exception as exc:  # noqa: BLE001
            raise map_gspread_exception(exc) from exc
        return config
