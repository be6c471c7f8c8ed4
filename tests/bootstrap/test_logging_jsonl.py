from __future__ import annotations

import json
import logging
import sys
import threading

from quotebook.bootstrap.exception_handler import (
    generar_id_incidente,
    instalar_hooks_de_excepcion,
    manejar_excepcion_global,
)
from quotebook.bootstrap.logging import CRASH_LOG_NAME, ERROR_OPERATIVO_LOG_NAME, MAIN_LOG_NAME, configure_logging
from quotebook.core.observability import OperationContext, log_event, log_operational_error

MIN_FIELDS = {"timestamp", "level", "modulo", "funcion", "mensaje", "correlation_id"}


def _read_events(path) -> list[dict]:
    for handler in logging.getLogger().handlers:
        handler.flush()
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def test_events_are_jsonl_with_correlation_id(tmp_path) -> None:
    configure_logging(tmp_path, max_bytes=4096, backup_count=1)
    logger = logging.getLogger("tests.jsonl")

    with OperationContext("sync_cycle") as operation:
        log_event(logger, "sync_started", {"local_records": 3})

    events = _read_events(tmp_path / MAIN_LOG_NAME)
    assert events
    assert all(MIN_FIELDS.issubset(event) for event in events)
    assert events[-1]["correlation_id"] == operation.correlation_id
    assert events[-1]["extra"]["payload"] == {"local_records": 3}


def test_operational_errors_go_to_their_own_file(tmp_path) -> None:
    configure_logging(tmp_path, max_bytes=4096, backup_count=1)
    logging.getLogger("tests.jsonl").warning("solo aviso")

    try:
        raise ConnectionError("503")
    except ConnectionError as exc:
        log_operational_error("Fallo al obtener la instantánea remota", exc=exc, extra={"cycle_id": "c-1"})

    events = _read_events(tmp_path / ERROR_OPERATIVO_LOG_NAME)
    assert [event["level"] for event in events] == ["ERROR"]
    assert events[0]["extra"]["error_type"] == "ConnectionError"
    assert events[0]["extra"]["cycle_id"] == "c-1"
    assert "exc_info" in events[0]


def test_global_exception_handler_writes_crash_log(tmp_path) -> None:
    configure_logging(tmp_path, max_bytes=4096, backup_count=1)

    try:
        raise RuntimeError("boom")
    except RuntimeError as exc:
        incident_id = manejar_excepcion_global(type(exc), exc, exc.__traceback__)

    events = _read_events(tmp_path / CRASH_LOG_NAME)
    assert incident_id.startswith("INC-")
    assert events[-1]["extra"]["incident_id"] == incident_id
    assert events[-1]["level"] == "CRITICAL"


def test_incident_ids_are_unique() -> None:
    assert generar_id_incidente() != generar_id_incidente()


def test_timer_thread_crash_reaches_crash_log(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)
    configure_logging(tmp_path, max_bytes=4096, backup_count=1)
    instalar_hooks_de_excepcion()

    def _explode() -> None:
        raise RuntimeError("fallo en el temporizador")

    worker = threading.Thread(target=_explode, name="quotebook-sync-timer")
    worker.start()
    worker.join(timeout=5)

    events = _read_events(tmp_path / CRASH_LOG_NAME)
    assert events[-1]["extra"]["thread"] == "quotebook-sync-timer"
    assert "fallo en el temporizador" in events[-1]["exc_info"]


def test_sheets_libraries_are_quieted(tmp_path) -> None:
    paths = configure_logging(tmp_path, max_bytes=4096, backup_count=1)

    assert [path.name for path in paths] == [MAIN_LOG_NAME, ERROR_OPERATIVO_LOG_NAME, CRASH_LOG_NAME]
    assert logging.getLogger("gspread").level == logging.WARNING
