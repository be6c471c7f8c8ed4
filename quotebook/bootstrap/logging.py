from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from quotebook.core.observability import get_correlation_id

DEFAULT_LOG_MAX_BYTES = 1_048_576
DEFAULT_LOG_BACKUP_COUNT = 10
MAIN_LOG_NAME = "seguimiento.log"
ERROR_OPERATIVO_LOG_NAME = "error_operativo.log"
CRASH_LOG_NAME = "crash.log"

# gspread y google-auth registran cada petición HTTP a nivel INFO/DEBUG.
NOISY_LOGGERS = ("gspread", "google", "google.auth", "urllib3")


class JsonLinesFormatter(logging.Formatter):
    """Una línea JSON por evento, con el correlation_id del ciclo en curso."""

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "modulo": record.module,
            "funcion": record.funcName,
            "hilo": record.threadName,
            "mensaje": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
        }
        payload_extra = getattr(record, "extra", None)
        if isinstance(payload_extra, dict) and payload_extra:
            event["extra"] = payload_extra
        if record.exc_info:
            event["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(event, ensure_ascii=False, default=str)


class LevelRangeFilter(logging.Filter):
    def __init__(self, minimum: int, maximum: int = logging.CRITICAL) -> None:
        super().__init__()
        self.minimum = minimum
        self.maximum = maximum

    def filter(self, record: logging.LogRecord) -> bool:
        return self.minimum <= record.levelno <= self.maximum


@dataclass(frozen=True)
class LogTarget:
    filename: str
    minimum: int | None
    maximum: int = logging.CRITICAL


# minimum=None: el nivel configurado en configure_logging.
LOG_TARGETS: tuple[LogTarget, ...] = (
    LogTarget(MAIN_LOG_NAME, None),
    LogTarget(ERROR_OPERATIVO_LOG_NAME, logging.ERROR, logging.ERROR),
    LogTarget(CRASH_LOG_NAME, logging.CRITICAL),
)


def _max_bytes_from_env(default: int) -> int:
    try:
        return int(os.environ["QUOTEBOOK_LOG_MAX_BYTES"])
    except (KeyError, ValueError):
        return default


def _build_handler(log_dir: Path, target: LogTarget, *, level: int, max_bytes: int, backup_count: int) -> RotatingFileHandler:
    minimum = level if target.minimum is None else target.minimum
    handler = RotatingFileHandler(log_dir / target.filename, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setLevel(minimum)
    handler.addFilter(LevelRangeFilter(minimum, target.maximum))
    handler.setFormatter(JsonLinesFormatter())
    return handler


def configure_logging(
    log_dir: Path,
    *,
    max_bytes: int | None = None,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
    level: int = logging.INFO,
) -> list[Path]:
    """Sustituye los handlers raíz por los ficheros JSONL rotativos.

    Devuelve las rutas de los ficheros configurados.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    resolved_max_bytes = max_bytes or _max_bytes_from_env(DEFAULT_LOG_MAX_BYTES)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(level)

    for target in LOG_TARGETS:
        root_logger.addHandler(
            _build_handler(log_dir, target, level=level, max_bytes=resolved_max_bytes, backup_count=backup_count)
        )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return [log_dir / target.filename for target in LOG_TARGETS]
