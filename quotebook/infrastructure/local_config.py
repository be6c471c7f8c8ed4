from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any

from quotebook.bootstrap.settings import DEFAULT_SYNC_INTERVAL_SECONDS, resolve_data_dir
from quotebook.domain.models import SheetsConfig
from quotebook.domain.ports import SheetsConfigStorePort

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
DEFAULT_WORKSHEET_NAME = "quotes"


def _text(payload: dict[str, Any], key: str) -> str:
    return str(payload.get(key) or "").strip()


def _interval(value: Any) -> float:
    if value in (None, ""):
        return DEFAULT_SYNC_INTERVAL_SECONDS
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("sync_interval_seconds inválido en %s: %r", CONFIG_FILENAME, value)
        return DEFAULT_SYNC_INTERVAL_SECONDS


class SheetsConfigStore(SheetsConfigStorePort):
    """``config.json`` del directorio de datos con la hoja remota de citas.

    Sin ``sheets_spreadsheet_id`` ni ``path_credentials_json`` la hoja se
    considera no configurada y ``load`` devuelve ``None``. El ``device_id`` se
    genera la primera vez y se conserva en el fichero.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        self._base_dir = base_dir or resolve_data_dir()
        self._config_path = self._base_dir / CONFIG_FILENAME
        self._credentials_path = self._base_dir / "secrets" / "credentials.json"

    def credentials_path(self) -> Path:
        return self._credentials_path

    def load(self) -> SheetsConfig | None:
        payload = self._read_payload()
        if payload is None:
            return None
        if not _text(payload, "device_id"):
            payload["device_id"] = str(uuid.uuid4())
            self._write_payload(payload)
        spreadsheet_id = _text(payload, "sheets_spreadsheet_id")
        credentials = _text(payload, "path_credentials_json")
        if not spreadsheet_id and not credentials:
            return None
        return SheetsConfig(
            spreadsheet_id=spreadsheet_id,
            credentials_path=credentials or str(self._credentials_path),
            device_id=_text(payload, "device_id"),
            worksheet_name=_text(payload, "worksheet_name") or DEFAULT_WORKSHEET_NAME,
            sync_interval_seconds=_interval(payload.get("sync_interval_seconds")),
        )

    def save(self, config: SheetsConfig) -> SheetsConfig:
        saved = SheetsConfig(
            spreadsheet_id=config.spreadsheet_id,
            credentials_path=config.credentials_path,
            device_id=config.device_id or str(uuid.uuid4()),
            worksheet_name=config.worksheet_name or DEFAULT_WORKSHEET_NAME,
            sync_interval_seconds=config.sync_interval_seconds,
        )
        self._write_payload(
            {
                "sheets_spreadsheet_id": saved.spreadsheet_id,
                "path_credentials_json": saved.credentials_path,
                "device_id": saved.device_id,
                "worksheet_name": saved.worksheet_name,
                "sync_interval_seconds": saved.sync_interval_seconds,
            }
        )
        logger.info("Configuración de Google Sheets guardada (pestaña '%s')", saved.worksheet_name)
        return saved

    def _read_payload(self) -> dict[str, Any] | None:
        if not self._config_path.exists():
            return None
        try:
            payload = json.loads(self._config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.exception("No se pudo leer %s", self._config_path)
            return None
        if not isinstance(payload, dict):
            logger.error("%s no contiene un objeto JSON", self._config_path)
            return None
        return payload

    def _write_payload(self, payload: dict[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._config_path.with_suffix(".json.tmp")
        staging.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(staging, self._config_path)
